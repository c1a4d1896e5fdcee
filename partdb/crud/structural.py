"""结构化（树形）表的数据库访问封装。"""

from typing import List, Optional

from sqlalchemy.orm import Session

from partdb.crud.base import CRUDBase, ModelType


class CRUDStructural(CRUDBase[ModelType]):
    """提供树形表的便捷查询方法，所有列表均按名称升序。"""

    def _parent_filter(self, parent_id: Optional[int]):
        if parent_id is None:
            return self.model.parent_id.is_(None)
        return self.model.parent_id == parent_id

    def list_children(self, db: Session, parent_id: Optional[int]) -> List[ModelType]:
        """返回直接子节点；``parent_id`` 为 ``None`` 时返回挂在根节点下的记录。"""
        query = self.query(db).filter(self._parent_filter(parent_id))
        return query.order_by(self.model.name.asc(), self.model.id.asc()).all()

    def find_sibling_by_name(
        self,
        db: Session,
        name: str,
        parent_id: Optional[int],
        *,
        exclude_id: Optional[int] = None,
    ) -> Optional[ModelType]:
        """按 ``(parent_id, name)`` 精确匹配（区分大小写）查找同级记录。"""
        query = self.query(db).filter(self.model.name == name, self._parent_filter(parent_id))
        if exclude_id is not None:
            query = query.filter(self.model.id != exclude_id)
        return query.first()

    def search(self, db: Session, keyword: str, *, exact_match: bool = False) -> List[ModelType]:
        """按名称检索；非精确模式下 ``*`` 视为通配符并在两端补 ``%``。"""
        if not keyword:
            return []
        query = self.query(db)
        if exact_match:
            query = query.filter(self.model.name == keyword)
        else:
            pattern = "%" + keyword.replace("*", "%") + "%"
            query = query.filter(self.model.name.like(pattern))
        return query.order_by(self.model.name.asc(), self.model.id.asc()).all()
