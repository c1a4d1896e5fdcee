"""用户组模型：为组内用户提供权限回退值。"""

from typing import List, Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from partdb.models.base import Base, PermissionColumnsMixin, TimestampMixin


class Group(PermissionColumnsMixin, TimestampMixin, Base):
    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    users: Mapped[List["User"]] = relationship(
        "User",
        primaryjoin="foreign(User.group_id) == Group.id",
        back_populates="group",
    )
