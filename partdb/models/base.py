"""模型基类：统一声明式基类、时间戳字段、结构化节点字段与权限列。

本模块集中提供：
- Base：SQLAlchemy 声明式基类，带统一命名约定；
- TimestampMixin：`created_at`、`last_modified`，由树存储在写入时赋值；
- StructuralMixin：`id`、`name`、`parent_id`、`comment`，所有树形表共用；
- PermissionColumnsMixin：每个权限类别一个 32 位整数列，默认 0（全部继承）。
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, MetaData, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import expression

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata_obj = MetaData(naming_convention=convention)


class Base(DeclarativeBase):
    """全局声明式基类，附带一致的命名约定，便于迁移与调试。"""

    metadata = metadata_obj


class TimestampMixin:
    """通用时间戳字段，永远由存储层赋值，不接受客户端传入。"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    last_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class StructuralMixin:
    """树形记录的公共字段。

    邻接表模型：`parent_id` 为空表示挂在虚拟根节点下。同级名称唯一、
    无环等业务规则由树存储在代码中校验，不依赖数据库约束。
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    parent_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    comment: Mapped[str] = mapped_column(Text, default="", server_default="")


class PermissionColumnsMixin:
    """权限列：列名与权限类别一一对应（``perms_<category>``）。"""

    perms_categories: Mapped[int] = mapped_column(Integer, default=0, server_default=expression.text("0"))
    perms_storelocations: Mapped[int] = mapped_column(Integer, default=0, server_default=expression.text("0"))
    perms_footprints: Mapped[int] = mapped_column(Integer, default=0, server_default=expression.text("0"))
    perms_manufacturers: Mapped[int] = mapped_column(Integer, default=0, server_default=expression.text("0"))
    perms_devices: Mapped[int] = mapped_column(Integer, default=0, server_default=expression.text("0"))
    perms_database: Mapped[int] = mapped_column(Integer, default=0, server_default=expression.text("0"))

    @staticmethod
    def permission_column(category: str) -> str:
        return f"perms_{category}"
