"""权限位掩码引擎：在 32 位整数中按 2 位一组编码各操作的 允许/拒绝/继承 状态。

每个权限类别对应一份操作注册表（``OperationRegistry``），记录 ``(位偏移, 操作名, 显示名)``；
偏移一经发布不得重新编号，新操作只能追加到未使用的偏移上，否则已存储的数据会被错误解读。

派生规则是单向的：授予某个较宽的能力时会自动授予其前置能力（例如 EDIT ⇒ READ），
而撤销前置能力不会自动撤销较宽的能力。这一不对称保持原有产品行为，不做“修正”。

引擎本身不沿用户组/角色链向上查找 INHERIT，继承关系由调用方（认证协作者）负责解析。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, Tuple, Union

from partdb.core.constants import PERMISSION_BITS_PER_OPERATION, PERMISSION_MAX_BIT
from partdb.core.enums import (
    DatabaseOperationEnum,
    PermissionCategoryEnum,
    PermissionValue,
    StructuralOperationEnum,
)
from partdb.core.exceptions import PermissionDeniedError, raise_consistency_fault

if TYPE_CHECKING:  # pragma: no cover
    from partdb.schemas.subject import Subject

logger = logging.getLogger(__name__)

_FIELD_MASK = (1 << PERMISSION_BITS_PER_OPERATION) - 1

KeyLike = Union[str, Enum]


def _key(value: KeyLike) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def read_bit_pair(data: int, offset: int) -> PermissionValue:
    """读取 ``offset`` 处的 2 位字段；保留值 3 按 INHERIT 处理。"""
    raw = (int(data) >> offset) & _FIELD_MASK
    if raw > PermissionValue.ALLOW:
        return PermissionValue.INHERIT
    return PermissionValue(raw)


def write_bit_pair(data: int, offset: int, value: int) -> int:
    """写入 ``offset`` 处的 2 位字段，其余位保持不变。"""
    cleared = int(data) & ~(_FIELD_MASK << offset)
    return cleared | ((int(value) & _FIELD_MASK) << offset)


@dataclass(frozen=True)
class Operation:
    bit_offset: int
    name: str
    label: str


@dataclass(frozen=True)
class OperationRegistry:
    """单个权限类别的操作注册表与派生规则。

    ``implies`` 把操作名映射到其前置操作名：当前者被设置为 ALLOW 时，
    前置操作也会被强制设置为 ALLOW。
    """

    category: str
    operations: Tuple[Operation, ...]
    implies: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        seen_offsets: Dict[int, str] = {}
        seen_names: set[str] = set()
        for op in self.operations:
            if op.bit_offset % PERMISSION_BITS_PER_OPERATION != 0:
                raise_consistency_fault("operation %s.%s uses odd bit offset %s", self.category, op.name, op.bit_offset)
            if op.bit_offset < 0 or op.bit_offset + PERMISSION_BITS_PER_OPERATION - 1 > PERMISSION_MAX_BIT:
                raise_consistency_fault("operation %s.%s bit offset %s out of range", self.category, op.name, op.bit_offset)
            if op.bit_offset in seen_offsets:
                raise_consistency_fault(
                    "operations %s and %s share bit offset %s in %s",
                    seen_offsets[op.bit_offset],
                    op.name,
                    op.bit_offset,
                    self.category,
                )
            if op.name in seen_names:
                raise_consistency_fault("operation %s registered twice in %s", op.name, self.category)
            seen_offsets[op.bit_offset] = op.name
            seen_names.add(op.name)

        for source, targets in self.implies.items():
            for name in (source, *targets):
                if name not in seen_names:
                    raise_consistency_fault("derivation rule of %s references unknown operation %s", self.category, name)

    def get(self, operation: KeyLike) -> Operation:
        name = _key(operation)
        for op in self.operations:
            if op.name == name:
                return op
        raise_consistency_fault("operation %r is not registered for category %r", name, self.category)


class PermissionEngine:
    """按类别键选择注册表并读写位掩码的通用引擎。"""

    def __init__(self, registries: Iterable[OperationRegistry]) -> None:
        self._registries: Dict[str, OperationRegistry] = {}
        for registry in registries:
            if registry.category in self._registries:
                raise_consistency_fault("permission category %r registered twice", registry.category)
            self._registries[registry.category] = registry

    def registry(self, category: KeyLike) -> OperationRegistry:
        key = _key(category)
        try:
            return self._registries[key]
        except KeyError:
            raise_consistency_fault("permission category %r is not registered", key)

    @property
    def categories(self) -> list[str]:
        return list(self._registries)

    def resolve(self, category: KeyLike, bitmask: int, operation: KeyLike) -> PermissionValue:
        """提取 ``operation`` 在位掩码中的取值；未注册的操作属于程序缺陷。"""
        op = self.registry(category).get(operation)
        return read_bit_pair(bitmask, op.bit_offset)

    def describe(self, category: KeyLike, bitmask: int) -> Dict[str, PermissionValue]:
        """按注册顺序展开整个位掩码，便于展示与调试。"""
        registry = self.registry(category)
        return {op.name: read_bit_pair(bitmask, op.bit_offset) for op in registry.operations}

    def can_do(self, subject: "Subject", category: KeyLike, operation: KeyLike) -> bool:
        """当且仅当解析结果为 ALLOW 时返回 ``True``；INHERIT 与 DENY 均视为不允许。"""
        bitmask = subject.permissions.get(_key(category), 0)
        return self.resolve(category, bitmask, operation) == PermissionValue.ALLOW

    def try_do(self, subject: "Subject", category: KeyLike, operation: KeyLike) -> None:
        if not self.can_do(subject, category, operation):
            logger.debug(
                "Permission denied: subject=%s category=%s operation=%s",
                getattr(subject, "id", None),
                _key(category),
                _key(operation),
            )
            raise PermissionDeniedError(
                "当前用户无权执行该操作",
                data={"category": _key(category), "operation": _key(operation)},
            )

    def set_value(self, category: KeyLike, bitmask: int, operation: KeyLike, value: Any) -> int:
        """写入单个操作的取值并应用类别的派生规则，返回新的位掩码。"""
        registry = self.registry(category)
        op = registry.get(operation)
        try:
            new_value = PermissionValue(int(value))
        except (TypeError, ValueError):
            raise_consistency_fault("invalid permission value %r for %s.%s", value, registry.category, op.name)

        data = write_bit_pair(bitmask, op.bit_offset, new_value)

        # 仅在授予时向前派生，撤销不会连带撤销
        if new_value == PermissionValue.ALLOW:
            for prerequisite in registry.implies.get(op.name, ()):
                data = write_bit_pair(data, registry.get(prerequisite).bit_offset, PermissionValue.ALLOW)
        return data


def _structural_registry(category: PermissionCategoryEnum) -> OperationRegistry:
    read = StructuralOperationEnum.READ.value
    return OperationRegistry(
        category=category.value,
        operations=(
            Operation(0, read, "查看"),
            Operation(2, StructuralOperationEnum.EDIT.value, "编辑"),
            Operation(4, StructuralOperationEnum.CREATE.value, "新建"),
            Operation(6, StructuralOperationEnum.MOVE.value, "移动"),
            Operation(8, StructuralOperationEnum.DELETE.value, "删除"),
        ),
        implies={
            StructuralOperationEnum.EDIT.value: (read,),
            StructuralOperationEnum.DELETE.value: (read,),
            StructuralOperationEnum.MOVE.value: (read,),
            StructuralOperationEnum.CREATE.value: (read,),
        },
    )


def _database_registry() -> OperationRegistry:
    return OperationRegistry(
        category=PermissionCategoryEnum.DATABASE.value,
        operations=(
            Operation(0, DatabaseOperationEnum.SEE_STATUS.value, "查看状态"),
            Operation(2, DatabaseOperationEnum.UPDATE_DB.value, "更新数据库"),
            Operation(4, DatabaseOperationEnum.READ_DB_SETTINGS.value, "查看数据库设置"),
            Operation(6, DatabaseOperationEnum.WRITE_DB_SETTINGS.value, "修改数据库设置"),
        ),
        implies={
            DatabaseOperationEnum.UPDATE_DB.value: (DatabaseOperationEnum.SEE_STATUS.value,),
            DatabaseOperationEnum.WRITE_DB_SETTINGS.value: (DatabaseOperationEnum.READ_DB_SETTINGS.value,),
        },
    )


STRUCTURAL_CATEGORIES = (
    PermissionCategoryEnum.CATEGORIES,
    PermissionCategoryEnum.STORELOCATIONS,
    PermissionCategoryEnum.FOOTPRINTS,
    PermissionCategoryEnum.MANUFACTURERS,
    PermissionCategoryEnum.DEVICES,
)


def build_default_registries() -> list[OperationRegistry]:
    registries = [_structural_registry(category) for category in STRUCTURAL_CATEGORIES]
    registries.append(_database_registry())
    return registries


permission_engine = PermissionEngine(build_default_registries())
