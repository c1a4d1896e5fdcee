"""认证协作者：维护用户/用户组上的权限整数，并解析出调用主体。

用户某个操作的取值为 INHERIT 时回退到所属用户组的取值；用户组仍为 INHERIT
则保持 INHERIT，权限引擎会将其视为“不允许”。
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from sqlalchemy.orm import Session

from partdb.core.enums import PermissionValue
from partdb.core.exceptions import NotFoundError, ValidationError
from partdb.core.permissions import KeyLike, permission_engine, read_bit_pair, write_bit_pair
from partdb.core.timezone import now
from partdb.crud.users import group_crud, user_crud
from partdb.models.base import PermissionColumnsMixin
from partdb.models.group import Group
from partdb.models.user import User
from partdb.schemas.subject import Subject

logger = logging.getLogger(__name__)

PermissionHolder = Union[User, Group]


class SubjectService:
    """封装用户/用户组的创建、权限修改与主体解析。"""

    def create_group(self, db: Session, *, name: str, comment: Optional[str] = None) -> Group:
        name_value = (name or "").strip()
        if not name_value:
            raise ValidationError("用户组名称不能为空", field="name")
        if group_crud.get_by_name(db, name_value) is not None:
            raise ValidationError(f"用户组已存在：{name_value}", field="name")
        timestamp = now()
        group = group_crud.create(
            db,
            {"name": name_value, "comment": comment, "created_at": timestamp, "last_modified": timestamp},
            auto_commit=True,
        )
        logger.info("Created group #%s (%s)", group.id, group.name)
        return group

    def create_user(
        self,
        db: Session,
        *,
        name: str,
        group_id: Optional[int] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        """新建用户，所有权限整数初始为 0（全部继承）。"""
        name_value = (name or "").strip()
        if not name_value:
            raise ValidationError("用户名不能为空", field="name")
        if user_crud.get_by_name(db, name_value) is not None:
            raise ValidationError(f"用户名已存在：{name_value}", field="name")
        if group_id is not None and group_crud.get(db, group_id) is None:
            raise NotFoundError(f"用户组不存在：#{group_id}", field="group_id")
        timestamp = now()
        user = user_crud.create(
            db,
            {
                "name": name_value,
                "group_id": group_id,
                "first_name": first_name,
                "last_name": last_name,
                "created_at": timestamp,
                "last_modified": timestamp,
            },
            auto_commit=True,
        )
        logger.info("Created user #%s (%s)", user.id, user.name)
        return user

    def resolve_permissions(self, user: User, group: Optional[Group] = None) -> Dict[str, int]:
        """逐个操作合并用户与用户组的位掩码。"""
        resolved: Dict[str, int] = {}
        for category in permission_engine.categories:
            column = PermissionColumnsMixin.permission_column(category)
            user_mask = getattr(user, column) or 0
            group_mask = (getattr(group, column) or 0) if group is not None else 0
            merged = 0
            for op in permission_engine.registry(category).operations:
                value = read_bit_pair(user_mask, op.bit_offset)
                if value == PermissionValue.INHERIT:
                    value = read_bit_pair(group_mask, op.bit_offset)
                merged = write_bit_pair(merged, op.bit_offset, value)
            resolved[category] = merged
        return resolved

    def build_subject(self, db: Session, user_id: int) -> Subject:
        user = user_crud.get(db, user_id)
        if user is None:
            raise NotFoundError(f"用户不存在：#{user_id}", field="user_id")
        group = group_crud.get(db, user.group_id) if user.group_id is not None else None
        return Subject(
            id=user.id,
            name=user.name,
            full_name=user.full_name,
            permissions=self.resolve_permissions(user, group),
        )

    def set_user_permission(
        self,
        db: Session,
        *,
        user_id: int,
        category: KeyLike,
        operation: KeyLike,
        value: Any,
    ) -> int:
        user = user_crud.get(db, user_id)
        if user is None:
            raise NotFoundError(f"用户不存在：#{user_id}", field="user_id")
        return self._set_permission(db, user, category, operation, value)

    def set_group_permission(
        self,
        db: Session,
        *,
        group_id: int,
        category: KeyLike,
        operation: KeyLike,
        value: Any,
    ) -> int:
        group = group_crud.get(db, group_id)
        if group is None:
            raise NotFoundError(f"用户组不存在：#{group_id}", field="group_id")
        return self._set_permission(db, group, category, operation, value)

    def _set_permission(
        self,
        db: Session,
        holder: PermissionHolder,
        category: KeyLike,
        operation: KeyLike,
        value: Any,
    ) -> int:
        registry = permission_engine.registry(category)
        column = PermissionColumnsMixin.permission_column(registry.category)
        updated = permission_engine.set_value(registry.category, getattr(holder, column) or 0, operation, value)
        setattr(holder, column, updated)
        holder.last_modified = now()
        try:
            db.add(holder)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info(
            "Permission %s.%s set to %s on %s #%s",
            registry.category,
            getattr(operation, "value", operation),
            PermissionValue(int(value)).name,
            holder.__tablename__,
            holder.id,
        )
        return updated


subject_service = SubjectService()
