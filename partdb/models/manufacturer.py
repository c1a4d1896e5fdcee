"""制造商实体模型。"""

from partdb.models.base import Base, StructuralMixin, TimestampMixin


class Manufacturer(StructuralMixin, TimestampMixin, Base):
    """制造商实体，可按集团/子品牌组织成树。"""

    __tablename__ = "manufacturers"
