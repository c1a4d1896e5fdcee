"""异常处理模块：定义统一的业务异常与程序缺陷异常。

业务异常（校验失败、权限不足、记录不存在）继承 ``AppException``，携带
``msg``/``code``/``data``，由调用方直接展示给最终用户，不作为系统故障记录日志。
``ConsistencyFault`` 表示编码缺陷（未注册的操作、根节点形态异常等），
必须经由 ``raise_consistency_fault`` 记录后抛出，禁止被吞掉。
"""

from __future__ import annotations

import logging
from typing import Any, NoReturn, Optional

from partdb.core.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_NOT_FOUND,
)

logger = logging.getLogger(__name__)


class AppException(Exception):
    """携带统一响应结构的业务异常，宿主 Web 层可按 ``code`` 直接转换为响应。"""

    def __init__(self, msg: str, code: int = HTTP_STATUS_BAD_REQUEST, data: Any = None) -> None:
        super().__init__(msg)
        self.msg = msg
        self.code = code
        self.data = data

    def to_payload(self) -> dict[str, Any]:
        return {"msg": self.msg, "data": self.data, "code": self.code}


class ValidationError(AppException):
    """用户可修正的输入问题，``field`` 指明出错的字段。"""

    def __init__(self, msg: str, *, field: Optional[str] = None, data: Any = None) -> None:
        super().__init__(msg, HTTP_STATUS_BAD_REQUEST, data)
        self.field = field

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["field"] = self.field
        return payload


class PermissionDeniedError(AppException):
    """当前主体缺少所需能力；抛出前不得修改任何状态。"""

    def __init__(self, msg: str = "当前用户无权执行该操作", data: Any = None) -> None:
        super().__init__(msg, HTTP_STATUS_FORBIDDEN, data)


class NotFoundError(AppException):
    def __init__(self, msg: str, *, field: Optional[str] = None, data: Any = None) -> None:
        super().__init__(msg, HTTP_STATUS_NOT_FOUND, data)
        self.field = field


class ConsistencyFault(RuntimeError):
    """程序缺陷：调用方传入了未注册的操作，或存储中的数据违反了不变量。"""


def raise_consistency_fault(message: str, *args: Any) -> NoReturn:
    """记录一条面向运维的错误日志后抛出 ``ConsistencyFault``。"""
    text = message % args if args else message
    logger.error("Consistency fault: %s", text)
    raise ConsistencyFault(text)
