"""枚举定义：约束权限取值、权限类别、操作名以及条码类型的可选值。"""

from enum import Enum, IntEnum


class PermissionValue(IntEnum):
    """单个操作在位掩码中的 2 位取值；3 为保留值，读取时按 INHERIT 处理。"""

    INHERIT = 0
    DENY = 1
    ALLOW = 2


class PermissionCategoryEnum(str, Enum):
    """权限类别，每个类别在用户/用户组上对应一个 32 位整数列。"""

    CATEGORIES = "categories"
    STORELOCATIONS = "storelocations"
    FOOTPRINTS = "footprints"
    MANUFACTURERS = "manufacturers"
    DEVICES = "devices"
    DATABASE = "database"


class StructuralOperationEnum(str, Enum):
    READ = "read"
    EDIT = "edit"
    CREATE = "create"
    MOVE = "move"
    DELETE = "delete"


class DatabaseOperationEnum(str, Enum):
    SEE_STATUS = "see_status"
    UPDATE_DB = "update_db"
    READ_DB_SETTINGS = "read_db_settings"
    WRITE_DB_SETTINGS = "write_db_settings"


class BarcodeTypeEnum(str, Enum):
    """存储位置标签支持的条码类型。"""

    C39 = "C39"
    QR = "QR"
