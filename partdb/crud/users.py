"""用户与用户组 CRUD：管理权限持有者的数据库操作。"""

from typing import Optional

from sqlalchemy.orm import Session

from partdb.crud.base import CRUDBase
from partdb.models.group import Group
from partdb.models.user import User


class CRUDUser(CRUDBase[User]):
    def get_by_name(self, db: Session, name: str) -> Optional[User]:
        """根据唯一用户名检索用户。"""
        return self.query(db).filter(User.name == name).first()


class CRUDGroup(CRUDBase[Group]):
    def get_by_name(self, db: Session, name: str) -> Optional[Group]:
        return self.query(db).filter(Group.name == name).first()


user_crud = CRUDUser(User)
group_crud = CRUDGroup(Group)
