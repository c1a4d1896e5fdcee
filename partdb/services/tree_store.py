"""树存储：所有结构化实体（分类、存储位置、封装、制造商、设备分组）共用的层级逻辑。

每张表是一片以虚拟根节点（id = 0）为根的森林。根节点没有对应的数据行，
``parent_id = -1``、``level = -1``，不可改名、移动或删除。

读取会先检查 READ 能力（无权限时返回遮蔽快照），变更会先通过权限引擎的
``try_do`` 校验对应能力，再在单个事务内完成校验与写入。

派生属性（层级、完整路径、子节点列表）缓存在 ``Session.info`` 中，随会话
（即单次请求）存活，任何变更或回滚后立即清空。
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, Type

from sqlalchemy.orm import Session

from partdb.core.config import get_settings
from partdb.core.constants import MASKED_TEXT, ROOT_LEVEL, ROOT_NODE_ID, ROOT_PARENT_ID
from partdb.core.enums import PermissionCategoryEnum, StructuralOperationEnum
from partdb.core.exceptions import (
    AppException,
    NotFoundError,
    ValidationError,
    raise_consistency_fault,
)
from partdb.core.permissions import KeyLike, permission_engine
from partdb.core.timezone import now
from partdb.crud.base import ModelType
from partdb.crud.structural import CRUDStructural
from partdb.models.category import Category
from partdb.models.device import Device
from partdb.models.footprint import Footprint
from partdb.models.manufacturer import Manufacturer
from partdb.schemas.node import NodeSnapshot
from partdb.schemas.subject import Subject

logger = logging.getLogger(__name__)

_TAG_PATTERN = re.compile(r"<[^>]*>")

# 删除时用于清理附件等外部资源的钩子，与行删除处于同一事务
CascadeHook = Callable[[Session, Any], None]


def strip_tags(value: Optional[str]) -> str:
    """去除名称中的 HTML 标签，防止展示层注入。"""
    if not value:
        return ""
    return _TAG_PATTERN.sub("", value)


def is_root_id(node_id: Any) -> bool:
    return node_id is None or node_id == ROOT_NODE_ID or node_id == str(ROOT_NODE_ID)


class TreeStore(Generic[ModelType]):
    """按表参数化的树存储，权限类别决定由哪份操作注册表把关。"""

    base_fields = ("name", "parent_id", "comment")
    # 子类声明的表特有可编辑列
    extra_fields: tuple[str, ...] = ()
    # 虚拟根节点上表特有列的取值
    root_extra: Dict[str, Any] = {}
    protected_fields = ("id", "created_at", "last_modified")

    def __init__(self, model: Type[ModelType], category: KeyLike) -> None:
        self.model = model
        self.crud = CRUDStructural(model)
        self.category = category.value if isinstance(category, PermissionCategoryEnum) else str(category)

    @property
    def tablename(self) -> str:
        return self.crud.tablename

    @property
    def editable_fields(self) -> tuple[str, ...]:
        return self.base_fields + self.extra_fields

    # ------------------------------------------------------------------
    # 权限
    # ------------------------------------------------------------------
    def can(self, subject: Subject, operation: StructuralOperationEnum) -> bool:
        return permission_engine.can_do(subject, self.category, operation)

    def _require(self, subject: Subject, operation: StructuralOperationEnum) -> None:
        permission_engine.try_do(subject, self.category, operation)

    # ------------------------------------------------------------------
    # 请求级缓存
    # ------------------------------------------------------------------
    def _cache(self, db: Session) -> Dict[str, Any]:
        return db.info.setdefault(
            ("tree_cache", self.tablename),
            {"level": {}, "path": {}, "children": {}, "row_count": None},
        )

    def invalidate(self, db: Session) -> None:
        """丢弃本表在当前会话中的全部派生缓存。"""
        db.info.pop(("tree_cache", self.tablename), None)

    @contextmanager
    def _unit_of_work(self, db: Session) -> Iterator[None]:
        """单次操作的事务边界：成功提交，任何异常回滚；两种情况都清空派生缓存。"""
        try:
            yield
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            self.invalidate(db)

    # ------------------------------------------------------------------
    # 行级辅助方法（不做权限检查）
    # ------------------------------------------------------------------
    def _get_row(self, db: Session, node_id: Any) -> ModelType:
        try:
            key = int(node_id)
        except (TypeError, ValueError):
            raise NotFoundError(f"节点 ID 无效：{node_id!r}", field="id")
        row = self.crud.get(db, key)
        if row is None:
            raise NotFoundError(f"节点不存在：{self.tablename}#{key}", field="id")
        return row

    def _row_limit(self, db: Session) -> int:
        cache = self._cache(db)
        if cache["row_count"] is None:
            cache["row_count"] = self.crud.count(db)
        return cache["row_count"]

    def _ancestor_rows(self, db: Session, row: ModelType) -> List[ModelType]:
        """沿 ``parent_id`` 向上遍历，返回从直接父节点到顶层节点的列表。

        步数超过表行数即判定存储数据成环；父节点缺失同样视为数据损坏。
        """
        ancestors: List[ModelType] = []
        limit = self._row_limit(db)
        parent_id = row.parent_id
        while parent_id is not None and parent_id != ROOT_NODE_ID:
            if len(ancestors) >= limit:
                raise_consistency_fault("cycle detected in %s above node #%s", self.tablename, row.id)
            parent = self.crud.get(db, parent_id)
            if parent is None:
                raise_consistency_fault(
                    "node %s#%s references missing parent #%s", self.tablename, row.id, parent_id
                )
            ancestors.append(parent)
            parent_id = parent.parent_id
        return ancestors

    def _level_of(self, db: Session, row: ModelType) -> int:
        levels = self._cache(db)["level"]
        if row.id not in levels:
            levels[row.id] = len(self._ancestor_rows(db, row))
        return levels[row.id]

    def _path_of(self, db: Session, row: ModelType) -> List[str]:
        paths = self._cache(db)["path"]
        if row.id not in paths:
            names = [strip_tags(row.name)]
            names.extend(strip_tags(parent.name) for parent in self._ancestor_rows(db, row))
            names.reverse()
            paths[row.id] = names
        return list(paths[row.id])

    def _children_rows(self, db: Session, parent_id: Optional[int]) -> List[ModelType]:
        children = self._cache(db)["children"]
        if parent_id not in children:
            children[parent_id] = self.crud.list_children(db, parent_id)
        return children[parent_id]

    def _subtree_rows(self, db: Session, parent_id: Optional[int]) -> List[ModelType]:
        """先序遍历：父节点在前，子节点按名称升序。"""
        result: List[ModelType] = []
        limit = self._row_limit(db)
        stack = list(reversed(self._children_rows(db, parent_id)))
        while stack:
            if len(result) > limit:
                raise_consistency_fault("cycle detected in %s below node #%s", self.tablename, parent_id)
            row = stack.pop()
            result.append(row)
            stack.extend(reversed(self._children_rows(db, row.id)))
        return result

    def _current_values(self, row: ModelType) -> Dict[str, Any]:
        return {field: getattr(row, field) for field in self.editable_fields}

    # ------------------------------------------------------------------
    # 快照
    # ------------------------------------------------------------------
    def root(self) -> NodeSnapshot:
        """虚拟根节点，没有对应的数据行。"""
        root_name = get_settings().root_node_name
        return NodeSnapshot(
            table=self.tablename,
            id=ROOT_NODE_ID,
            name=root_name,
            parent_id=ROOT_PARENT_ID,
            level=ROOT_LEVEL,
            full_path=[root_name],
            extra=dict(self.root_extra),
        )

    def _masked(self, row: ModelType) -> NodeSnapshot:
        return NodeSnapshot(
            table=self.tablename,
            id=row.id,
            name=MASKED_TEXT,
            parent_id=None,
            level=ROOT_LEVEL,
            full_path=[MASKED_TEXT],
            readable=False,
        )

    def _snapshot(self, db: Session, subject: Subject, row: ModelType) -> NodeSnapshot:
        if not self.can(subject, StructuralOperationEnum.READ):
            return self._masked(row)
        return NodeSnapshot(
            table=self.tablename,
            id=row.id,
            name=strip_tags(row.name),
            parent_id=row.parent_id,
            comment=row.comment or "",
            level=self._level_of(db, row),
            full_path=self._path_of(db, row),
            created_at=row.created_at,
            last_modified=row.last_modified,
            extra={field: getattr(row, field) for field in self.extra_fields},
        )

    # ------------------------------------------------------------------
    # 读取
    # ------------------------------------------------------------------
    def get_node(self, db: Session, subject: Subject, node_id: Any) -> NodeSnapshot:
        """按 ID 获取节点；``0`` 解析为虚拟根节点。"""
        if is_root_id(node_id):
            return self.root()
        return self._snapshot(db, subject, self._get_row(db, node_id))

    def get_children(
        self,
        db: Session,
        subject: Subject,
        node_id: Any = ROOT_NODE_ID,
        *,
        recursive: bool = False,
    ) -> List[NodeSnapshot]:
        """返回子节点快照；递归时按先序展开整棵子树。无 READ 权限时返回空列表。"""
        parent_id = None if is_root_id(node_id) else self._get_row(db, node_id).id
        if not self.can(subject, StructuralOperationEnum.READ):
            return []
        rows = self._subtree_rows(db, parent_id) if recursive else self._children_rows(db, parent_id)
        return [self._snapshot(db, subject, row) for row in rows]

    def get_level(self, db: Session, subject: Subject, node_id: Any) -> int:
        return self.get_node(db, subject, node_id).level

    def get_full_path(
        self,
        db: Session,
        subject: Subject,
        node_id: Any,
        delimiter: Optional[str] = None,
    ) -> str:
        if delimiter is None:
            delimiter = get_settings().path_delimiter
        return self.get_node(db, subject, node_id).path_string(delimiter)

    def is_descendant_of(self, db: Session, node_id: Any, ancestor_id: Any) -> bool:
        """``ancestor_id`` 是否出现在 ``node_id`` 的祖先链上（不含自身）。"""
        if is_root_id(node_id):
            return False
        row = self._get_row(db, node_id)
        if is_root_id(ancestor_id):
            return True
        target = int(ancestor_id)
        return any(parent.id == target for parent in self._ancestor_rows(db, row))

    def search(
        self,
        db: Session,
        subject: Subject,
        keyword: str,
        *,
        exact_match: bool = False,
    ) -> List[NodeSnapshot]:
        if not self.can(subject, StructuralOperationEnum.READ):
            return []
        rows = self.crud.search(db, (keyword or "").strip(), exact_match=exact_match)
        return [self._snapshot(db, subject, row) for row in rows]

    def count(self, db: Session) -> int:
        return self.crud.count(db)

    # ------------------------------------------------------------------
    # 校验
    # ------------------------------------------------------------------
    def _normalize_parent_id(self, value: Any) -> Optional[int]:
        if value is None or value == "":
            return None
        try:
            parent_id = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"上级节点 ID 无效：{value!r}", field="parent_id")
        if parent_id == ROOT_NODE_ID:
            return None
        if parent_id < 0:
            raise ValidationError(f"上级节点 ID 无效：{value!r}", field="parent_id")
        return parent_id

    def _check_fields(self, values: Dict[str, Any]) -> None:
        for key in values:
            if key in self.protected_fields:
                raise ValidationError(f"字段 {key} 由系统维护，不允许修改", field=key)
            if key not in self.editable_fields:
                raise ValidationError(f"未知字段：{key}", field=key)

    def validate(
        self,
        db: Session,
        values: Dict[str, Any],
        is_new: bool,
        existing: Optional[ModelType] = None,
    ) -> Dict[str, Any]:
        """校验新建/编辑后的完整取值，返回规范化后的副本。

        唯一的自动修正是去除名称首尾空白；``parent_id`` 为 0 时归一化为 ``None``。
        """
        if not is_new and existing is None:
            raise_consistency_fault("validate() on %s called without the edited node", self.tablename)

        normalized = dict(values)
        raw_name = normalized.get("name")
        name = str(raw_name).strip() if raw_name is not None else ""
        if not name:
            raise ValidationError("名称不能为空", field="name")
        normalized["name"] = name

        parent_id = self._normalize_parent_id(normalized.get("parent_id"))
        normalized["parent_id"] = parent_id
        if normalized.get("comment") is None:
            normalized["comment"] = ""

        node_id = None if is_new else existing.id
        if node_id is not None and parent_id == node_id:
            raise ValidationError("节点不能作为自身的子节点", field="parent_id")

        if parent_id is not None:
            parent = self.crud.get(db, parent_id)
            if parent is None:
                raise NotFoundError(f"所选上级节点不存在：#{parent_id}", field="parent_id")
            if node_id is not None and any(a.id == node_id for a in self._ancestor_rows(db, parent)):
                raise ValidationError("节点不能移动到自身的子节点下", field="parent_id")
            parent_path = get_settings().path_delimiter.join(
                [strip_tags(a.name) for a in reversed(self._ancestor_rows(db, parent))] + [strip_tags(parent.name)]
            )
        else:
            parent_path = get_settings().root_node_name

        duplicate = self.crud.find_sibling_by_name(db, name, parent_id, exclude_id=node_id)
        if duplicate is not None:
            raise ValidationError(
                f"同级已存在同名节点（{self.tablename}::{parent_path}）：{strip_tags(name)}",
                field="name",
            )
        return normalized

    # ------------------------------------------------------------------
    # 变更
    # ------------------------------------------------------------------
    def add(
        self,
        db: Session,
        subject: Subject,
        name: str,
        parent_id: Any = None,
        **extra_values: Any,
    ) -> NodeSnapshot:
        """新建节点；需要 CREATE 能力。"""
        self._require(subject, StructuralOperationEnum.CREATE)
        values: Dict[str, Any] = {"name": name, "parent_id": parent_id, **extra_values}
        self._check_fields(values)

        with self._unit_of_work(db):
            normalized = self.validate(db, values, is_new=True)
            timestamp = now()
            row = self.crud.create(db, {**normalized, "created_at": timestamp, "last_modified": timestamp})
            node_id = row.id

        logger.info("Created %s #%s (%s)", self.tablename, node_id, normalized["name"])
        return self.get_node(db, subject, node_id)

    def set_attributes(
        self,
        db: Session,
        subject: Subject,
        node_id: Any,
        changes: Dict[str, Any],
    ) -> NodeSnapshot:
        """部分更新节点。

        ``parent_id`` 需要 MOVE 能力，其余字段需要 EDIT 能力；只要缺少其中任一所需能力，
        整个变更集都会被拒绝，不做部分应用。
        """
        if is_root_id(node_id):
            raise ValidationError("顶级节点不可修改", field="id")
        changes = dict(changes)
        if not changes:
            raise ValidationError("未提供任何需要修改的字段")
        self._check_fields(changes)

        if "parent_id" in changes:
            self._require(subject, StructuralOperationEnum.MOVE)
        if any(key != "parent_id" for key in changes):
            self._require(subject, StructuralOperationEnum.EDIT)

        row = self._get_row(db, node_id)
        with self._unit_of_work(db):
            merged = {**self._current_values(row), **changes}
            normalized = self.validate(db, merged, is_new=False, existing=row)
            for key, value in normalized.items():
                setattr(row, key, value)
            row.last_modified = now()
            self.crud.save(db, row)

        logger.info("Updated %s #%s fields=%s", self.tablename, row.id, sorted(changes))
        return self.get_node(db, subject, row.id)

    def delete(
        self,
        db: Session,
        subject: Subject,
        node_id: Any,
        *,
        recursive: bool = False,
        cascade_external: Optional[CascadeHook] = None,
    ) -> None:
        """删除节点；需要 DELETE 能力。

        - ``recursive=True``：整棵子树一并删除；
        - ``recursive=False``：直接子节点改挂到本节点的父节点下（孙节点结构不变）。

        ``cascade_external`` 对每个被删除的行调用一次，与行删除处于同一事务。
        任一步骤失败都会整体回滚，不会出现部分删除。
        """
        self._require(subject, StructuralOperationEnum.DELETE)
        if is_root_id(node_id):
            raise ValidationError("顶级节点不可删除", field="id")

        row = self._get_row(db, node_id)
        row_id, row_name = row.id, row.name
        try:
            with self._unit_of_work(db):
                removed = self._delete_row(db, row, recursive, cascade_external)
        except AppException as exc:
            logger.info("Delete of %s #%s rejected: %s", self.tablename, row_id, exc.msg)
            raise
        except Exception:
            logger.exception("Delete of %s #%s failed, transaction rolled back", self.tablename, row_id)
            raise

        logger.info(
            "Deleted %s #%s (%s), %s row(s) removed, recursive=%s",
            self.tablename,
            row_id,
            row_name,
            removed,
            recursive,
        )

    def _delete_row(
        self,
        db: Session,
        row: ModelType,
        recursive: bool,
        cascade_external: Optional[CascadeHook],
    ) -> int:
        # 先处理子节点（删除或改挂），最后才移除本行；改挂时本行仍是新父节点下的同级节点
        children = list(self.crud.list_children(db, row.id))
        new_parent_id = row.parent_id

        removed = 1
        for child in children:
            if recursive:
                removed += self._delete_row(db, child, True, cascade_external)
                continue
            merged = {**self._current_values(child), "parent_id": new_parent_id}
            normalized = self.validate(db, merged, is_new=False, existing=child)
            child.parent_id = normalized["parent_id"]
            child.last_modified = now()
            self.crud.save(db, child)
            self.invalidate(db)

        if cascade_external is not None:
            cascade_external(db, row)
        self.crud.hard_delete(db, row)
        self.invalidate(db)
        return removed


category_store = TreeStore(Category, PermissionCategoryEnum.CATEGORIES)
footprint_store = TreeStore(Footprint, PermissionCategoryEnum.FOOTPRINTS)
manufacturer_store = TreeStore(Manufacturer, PermissionCategoryEnum.MANUFACTURERS)
device_store = TreeStore(Device, PermissionCategoryEnum.DEVICES)
