"""权限位掩码引擎的读写、派生与校验测试。"""

import pytest

from partdb.core.enums import (
    DatabaseOperationEnum,
    PermissionCategoryEnum,
    PermissionValue,
    StructuralOperationEnum,
)
from partdb.core.exceptions import ConsistencyFault, PermissionDeniedError
from partdb.core.permissions import (
    Operation,
    OperationRegistry,
    PermissionEngine,
    permission_engine,
    read_bit_pair,
    write_bit_pair,
)
from partdb.schemas.subject import Subject

CATEGORIES = PermissionCategoryEnum.CATEGORIES.value
DATABASE = PermissionCategoryEnum.DATABASE.value


def test_zero_bitmask_resolves_every_operation_to_inherit():
    """位掩码为 0 时所有操作都是 INHERIT。"""
    described = permission_engine.describe(CATEGORIES, 0)
    assert list(described) == ["read", "edit", "create", "move", "delete"]
    assert set(described.values()) == {PermissionValue.INHERIT}


def test_reserved_value_three_is_read_as_inherit():
    """2 位字段中的保留值 3 按 INHERIT 解读。"""
    assert read_bit_pair(0b11, 0) == PermissionValue.INHERIT
    assert permission_engine.resolve(CATEGORIES, 0b11 << 4, StructuralOperationEnum.CREATE) == PermissionValue.INHERIT


def test_write_bit_pair_only_touches_its_own_field():
    """写入某个字段不会改变其余位。"""
    base = 0b10_01_10_01_10_00
    updated = write_bit_pair(base, 4, PermissionValue.DENY)
    assert read_bit_pair(updated, 4) == PermissionValue.DENY
    assert updated & ~(0b11 << 4) == base & ~(0b11 << 4)


@pytest.mark.parametrize("operation", list(StructuralOperationEnum))
@pytest.mark.parametrize("value", [PermissionValue.INHERIT, PermissionValue.DENY])
def test_set_value_without_grant_changes_only_target_field(operation, value):
    """非 ALLOW 的写入只修改目标操作的字段。"""
    base = 0b01_10_01_10_01
    before = permission_engine.describe(CATEGORIES, base)
    after = permission_engine.describe(CATEGORIES, permission_engine.set_value(CATEGORIES, base, operation, value))

    assert after[operation.value] == value
    for name, original in before.items():
        if name != operation.value:
            assert after[name] == original


def test_granting_edit_implies_read():
    """对空掩码授予 EDIT 后，EDIT 与 READ 均为 ALLOW，其余仍为 INHERIT。"""
    bitmask = permission_engine.set_value(CATEGORIES, 0, StructuralOperationEnum.EDIT, PermissionValue.ALLOW)

    assert bitmask == 0b10_10
    described = permission_engine.describe(CATEGORIES, bitmask)
    assert described["edit"] == PermissionValue.ALLOW
    assert described["read"] == PermissionValue.ALLOW
    assert described["create"] == PermissionValue.INHERIT
    assert described["move"] == PermissionValue.INHERIT
    assert described["delete"] == PermissionValue.INHERIT


def test_revoking_read_does_not_revoke_edit():
    """撤销前置能力不会连带撤销较宽的能力。"""
    bitmask = permission_engine.set_value(CATEGORIES, 0, "edit", PermissionValue.ALLOW)
    bitmask = permission_engine.set_value(CATEGORIES, bitmask, "read", PermissionValue.DENY)

    assert permission_engine.resolve(CATEGORIES, bitmask, "read") == PermissionValue.DENY
    assert permission_engine.resolve(CATEGORIES, bitmask, "edit") == PermissionValue.ALLOW


@pytest.mark.parametrize("operation", ["edit", "create", "move", "delete"])
def test_every_structural_grant_implies_read(operation):
    bitmask = permission_engine.set_value(CATEGORIES, 0, operation, PermissionValue.ALLOW)
    assert permission_engine.resolve(CATEGORIES, bitmask, "read") == PermissionValue.ALLOW


def test_database_derivations():
    """UPDATE_DB 派生 SEE_STATUS，WRITE_DB_SETTINGS 派生 READ_DB_SETTINGS，彼此互不影响。"""
    bitmask = permission_engine.set_value(DATABASE, 0, DatabaseOperationEnum.WRITE_DB_SETTINGS, PermissionValue.ALLOW)
    described = permission_engine.describe(DATABASE, bitmask)
    assert described["write_db_settings"] == PermissionValue.ALLOW
    assert described["read_db_settings"] == PermissionValue.ALLOW
    assert described["update_db"] == PermissionValue.INHERIT
    assert described["see_status"] == PermissionValue.INHERIT

    bitmask = permission_engine.set_value(DATABASE, 0, DatabaseOperationEnum.UPDATE_DB, PermissionValue.ALLOW)
    assert permission_engine.resolve(DATABASE, bitmask, "see_status") == PermissionValue.ALLOW
    assert permission_engine.resolve(DATABASE, bitmask, "read_db_settings") == PermissionValue.INHERIT


def test_unknown_operation_and_category_are_faults():
    with pytest.raises(ConsistencyFault):
        permission_engine.resolve(CATEGORIES, 0, "fly")
    with pytest.raises(ConsistencyFault):
        permission_engine.resolve("spaceships", 0, "read")
    with pytest.raises(ConsistencyFault):
        permission_engine.set_value(CATEGORIES, 0, "read", 3)


def test_registry_rejects_invalid_layouts():
    """奇数偏移、越界偏移、重复偏移与未知派生目标都会在构造时报错。"""
    with pytest.raises(ConsistencyFault):
        OperationRegistry("demo", (Operation(1, "a", "A"),))
    with pytest.raises(ConsistencyFault):
        OperationRegistry("demo", (Operation(30, "a", "A"),))
    with pytest.raises(ConsistencyFault):
        OperationRegistry("demo", (Operation(2, "a", "A"), Operation(2, "b", "B")))
    with pytest.raises(ConsistencyFault):
        OperationRegistry("demo", (Operation(0, "a", "A"),), implies={"a": ("missing",)})

    registry = OperationRegistry("demo", (Operation(28, "a", "A"),))
    engine = PermissionEngine([registry])
    assert engine.resolve("demo", PermissionValue.ALLOW << 28, "a") == PermissionValue.ALLOW

    with pytest.raises(ConsistencyFault):
        PermissionEngine([registry, registry])


def test_can_do_and_try_do():
    """只有 ALLOW 放行；缺失的类别按 0 处理。"""
    allowed = Subject(name="a", permissions={CATEGORIES: 2})
    denied = Subject(name="d", permissions={CATEGORIES: 1})
    empty = Subject(name="e")

    assert permission_engine.can_do(allowed, CATEGORIES, "read")
    assert not permission_engine.can_do(denied, CATEGORIES, "read")
    assert not permission_engine.can_do(empty, CATEGORIES, "read")

    permission_engine.try_do(allowed, PermissionCategoryEnum.CATEGORIES, StructuralOperationEnum.READ)
    with pytest.raises(PermissionDeniedError) as exc_info:
        permission_engine.try_do(empty, CATEGORIES, StructuralOperationEnum.DELETE)
    assert exc_info.value.code == 403
    assert exc_info.value.data == {"category": "categories", "operation": "delete"}
