"""用户模型：描述系统中的账号及其权限整数。"""

from typing import Optional

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from partdb.models.base import Base, PermissionColumnsMixin, TimestampMixin


class User(PermissionColumnsMixin, TimestampMixin, Base):
    """用户实体，可选地归属于某个用户组；用户自身取值为 INHERIT 的操作回退到组的取值。"""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    group_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    group: Mapped[Optional["Group"]] = relationship(
        "Group",
        primaryjoin="foreign(User.group_id) == Group.id",
        back_populates="users",
    )

    @property
    def full_name(self) -> str:
        parts = [part for part in (self.first_name, self.last_name) if part]
        return " ".join(parts) if parts else self.name
