"""树存储删除流程测试：递归删除、子节点改挂、外部级联与事务回滚。"""

import pytest

from partdb.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from partdb.models.category import Category
from partdb.services.tree_store import category_store


def _build(db, admin):
    """A(B(C), D) 加上一个无关的顶层节点 E。"""
    a = category_store.add(db, admin, "A")
    b = category_store.add(db, admin, "B", parent_id=a.id)
    c = category_store.add(db, admin, "C", parent_id=b.id)
    d = category_store.add(db, admin, "D", parent_id=a.id)
    e = category_store.add(db, admin, "E")
    return a, b, c, d, e


def test_recursive_delete_removes_whole_subtree(db, admin):
    a, b, c, d, e = _build(db, admin)

    category_store.delete(db, admin, a.id, recursive=True)

    remaining = db.query(Category).all()
    assert [row.id for row in remaining] == [e.id]
    ids = {row.id for row in remaining}
    assert all(row.parent_id is None or row.parent_id in ids for row in remaining)


def test_non_recursive_delete_reparents_direct_children(db, admin):
    a, b, c, d, e = _build(db, admin)

    category_store.delete(db, admin, a.id)

    assert category_store.count(db) == 4
    assert category_store.get_node(db, admin, b.id).parent_id is None
    assert category_store.get_node(db, admin, d.id).parent_id is None
    grandchild = category_store.get_node(db, admin, c.id)
    assert grandchild.parent_id == b.id
    assert grandchild.full_path == ["B", "C"]


def test_child_named_like_deleted_parent_collides(db, admin):
    """改挂时被删节点仍在原位，与之同名的子节点无法上移，整体回滚。"""
    outer = category_store.add(db, admin, "X")
    inner = category_store.add(db, admin, "X", parent_id=outer.id)

    with pytest.raises(ValidationError):
        category_store.delete(db, admin, outer.id)

    assert category_store.count(db) == 2
    assert category_store.get_node(db, admin, inner.id).parent_id == outer.id
    assert category_store.get_node(db, admin, outer.id).parent_id is None


def test_reparent_collision_rolls_back(db, admin):
    """改挂后与新父节点下的同名节点冲突时整体回滚。"""
    category_store.add(db, admin, "X")
    a = category_store.add(db, admin, "A")
    child = category_store.add(db, admin, "X", parent_id=a.id)

    with pytest.raises(ValidationError):
        category_store.delete(db, admin, a.id)

    assert category_store.count(db) == 3
    assert category_store.get_node(db, admin, child.id).parent_id == a.id


def test_cascade_hook_runs_for_every_removed_row(db, admin):
    a, b, c, d, e = _build(db, admin)
    seen = []

    category_store.delete(db, admin, a.id, recursive=True, cascade_external=lambda session, row: seen.append(row.id))

    assert sorted(seen) == sorted([a.id, b.id, c.id, d.id])


def test_cascade_hook_runs_children_before_parent(db, admin):
    """递归删除时后代的钩子先于祖先执行。"""
    a, b, c, d, e = _build(db, admin)
    seen = []

    category_store.delete(db, admin, a.id, recursive=True, cascade_external=lambda session, row: seen.append(row.id))

    assert seen == [c.id, b.id, d.id, a.id]


def test_cascade_hook_runs_after_children_are_reparented(db, admin):
    a, b, c, d, e = _build(db, admin)
    remaining_children = []

    def hook(session, row):
        remaining_children.append([child.id for child in category_store.crud.list_children(session, row.id)])

    category_store.delete(db, admin, a.id, cascade_external=hook)

    assert remaining_children == [[]]
    assert [node.name for node in category_store.get_children(db, admin)] == ["B", "D", "E"]


def test_cascade_hook_failure_rolls_back_everything(db, admin):
    a, b, c, d, e = _build(db, admin)

    def hook(session, row):
        if row.id == c.id:
            raise RuntimeError("attachment cleanup failed")

    with pytest.raises(RuntimeError):
        category_store.delete(db, admin, a.id, recursive=True, cascade_external=hook)

    assert category_store.count(db) == 5
    assert category_store.get_node(db, admin, c.id).full_path == ["A", "B", "C"]


def test_delete_requires_permission(db, admin, make_subject):
    a = category_store.add(db, admin, "A")
    editor = make_subject(categories=["edit", "create", "move"])

    with pytest.raises(PermissionDeniedError):
        category_store.delete(db, editor, a.id)
    assert category_store.count(db) == 1

    deleter = make_subject(categories=["delete"])
    category_store.delete(db, deleter, a.id)
    assert category_store.count(db) == 0


def test_delete_unknown_node(db, admin):
    with pytest.raises(NotFoundError):
        category_store.delete(db, admin, 404)
