"""存储位置模型：描述零件的物理存放位置（柜子/抽屉/格子）。"""

from sqlalchemy import Boolean
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from partdb.models.base import Base, StructuralMixin, TimestampMixin


class Storelocation(StructuralMixin, TimestampMixin, Base):
    """存储位置实体；`is_full` 标记该位置已放满，不再接收新零件。"""

    __tablename__ = "storelocations"

    is_full: Mapped[bool] = mapped_column(Boolean, default=False, server_default=expression.false())
