"""操作主体：由认证协作者解析好的用户身份与各类别权限整数。"""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class Subject(BaseModel):
    """显式传入树存储与权限引擎的调用主体，核心内不存在全局“当前用户”。

    ``permissions`` 以权限类别为键，值为已完成用户组继承解析的 32 位整数；
    缺失的类别按 0（全部继承，即不允许）处理。
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    name: str
    full_name: Optional[str] = None
    permissions: Dict[str, int] = Field(default_factory=dict)
