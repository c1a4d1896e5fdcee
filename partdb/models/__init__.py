"""模型包初始化，便于统一导入 ORM 实体并触发模型注册。"""

from partdb.models.category import Category
from partdb.models.device import Device
from partdb.models.footprint import Footprint
from partdb.models.group import Group
from partdb.models.manufacturer import Manufacturer
from partdb.models.storelocation import Storelocation
from partdb.models.user import User

__all__ = [
    "Category",
    "Device",
    "Footprint",
    "Group",
    "Manufacturer",
    "Storelocation",
    "User",
]
