"""CRUD 基类：为各实体提供通用的数据访问方法。

事务边界由业务层（树存储、主体服务）掌控，因此这里的写操作默认只 ``flush``，
仅在显式传入 ``auto_commit=True`` 时提交。
"""

from typing import Any, Dict, Generic, Optional, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Session

from partdb.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    """封装常见的查询、创建与保存逻辑，减少重复代码。"""

    def __init__(self, model: Type[ModelType]):
        self.model = model

    @property
    def tablename(self) -> str:
        return self.model.__tablename__

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return db.get(self.model, id)

    def count(self, db: Session) -> int:
        return db.query(func.count(self.model.id)).scalar() or 0

    def create(self, db: Session, obj_in: Dict[str, Any], *, auto_commit: bool = False) -> ModelType:
        db_obj = self.model(**obj_in)
        db.add(db_obj)
        if auto_commit:
            db.commit()
            db.refresh(db_obj)
        else:
            db.flush()
        return db_obj

    def save(self, db: Session, db_obj: ModelType, *, auto_commit: bool = False) -> ModelType:
        db.add(db_obj)
        if auto_commit:
            db.commit()
            db.refresh(db_obj)
        else:
            db.flush()
        return db_obj

    def hard_delete(self, db: Session, db_obj: ModelType, *, auto_commit: bool = False) -> None:
        """物理删除行。默认仅 ``flush``，由调用方决定提交或回滚。"""
        db.delete(db_obj)
        if auto_commit:
            try:
                db.commit()
            except Exception:
                db.rollback()
                raise
        else:
            db.flush()

    def query(self, db: Session):
        return db.query(self.model)
