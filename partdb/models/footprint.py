"""封装实体模型。"""

from partdb.models.base import Base, StructuralMixin, TimestampMixin


class Footprint(StructuralMixin, TimestampMixin, Base):
    """封装实体，例如 SMD 0805、DIP-8。"""

    __tablename__ = "footprints"
