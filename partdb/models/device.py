"""设备（项目）分组实体模型。"""

from partdb.models.base import Base, StructuralMixin, TimestampMixin


class Device(StructuralMixin, TimestampMixin, Base):
    """设备（项目）分组实体，用于组织 BOM。"""

    __tablename__ = "devices"
