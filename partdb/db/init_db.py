"""Database bootstrapping utilities."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from partdb.core.enums import PermissionValue
from partdb.core.permissions import permission_engine
from partdb.core.timezone import now
from partdb.db import session as db_session
from partdb.models import Group, User  # noqa: F401 - ensure every table is registered
from partdb.models.base import Base, PermissionColumnsMixin

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_GROUP = "admins"
DEFAULT_ADMIN_USERNAME = "admin"


def full_access_mask(category: str) -> int:
    """返回某个类别下所有操作均为 ALLOW 的位掩码。"""
    mask = 0
    for op in permission_engine.registry(category).operations:
        mask = permission_engine.set_value(category, mask, op.name, PermissionValue.ALLOW)
    return mask


def init_db() -> None:
    """Create all database tables if they do not exist and seed baseline data."""
    Base.metadata.create_all(bind=db_session.engine)

    session = db_session.SessionLocal()
    try:
        _seed_admin(session)
        session.commit()
    except Exception:  # pragma: no cover - initialization failures should surface
        session.rollback()
        logger.exception("Failed to seed default data during database initialization")
        raise
    finally:
        session.close()


def _seed_admin(db: Session) -> None:
    """确保管理员用户组（全部权限 ALLOW）与默认管理员账号存在。"""
    timestamp = now()
    group = db.query(Group).filter(Group.name == DEFAULT_ADMIN_GROUP).first()
    if group is None:
        group = Group(name=DEFAULT_ADMIN_GROUP, created_at=timestamp, last_modified=timestamp)
        db.add(group)
    for category in permission_engine.categories:
        setattr(group, PermissionColumnsMixin.permission_column(category), full_access_mask(category))
    db.flush()

    admin = db.query(User).filter(User.name == DEFAULT_ADMIN_USERNAME).first()
    if admin is None:
        admin = User(
            name=DEFAULT_ADMIN_USERNAME,
            group_id=group.id,
            created_at=timestamp,
            last_modified=timestamp,
        )
        db.add(admin)
        db.flush()
        logger.info("Seeded default administrator #%s", admin.id)
    elif admin.group_id is None:
        admin.group_id = group.id
