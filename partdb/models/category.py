"""分类实体模型。"""

from partdb.models.base import Base, StructuralMixin, TimestampMixin


class Category(StructuralMixin, TimestampMixin, Base):
    """分类实体，零件按分类组织成树。"""

    __tablename__ = "categories"
