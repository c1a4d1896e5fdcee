"""树节点快照：树存储对外返回的只读结构。

每次读取/变更都会生成新的快照，调用方无需（也无法）手动清理派生字段缓存。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from partdb.core.constants import API_PATH_DELIMITER, ROOT_NODE_ID


def _camelize(name: str) -> str:
    head, *tail = name.split("_")
    return head + "".join(part.capitalize() for part in tail)


class NodeSnapshot(BaseModel):
    """单个节点及其派生属性（层级、完整路径）。"""

    model_config = ConfigDict(frozen=True)

    table: str
    id: int
    name: str
    parent_id: Optional[int] = None
    comment: str = ""
    level: int
    full_path: list[str]
    created_at: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    extra: Dict[str, Any] = Field(default_factory=dict)
    # 无 READ 权限时为 False，此时名称、路径等字段均为遮蔽值
    readable: bool = True

    @property
    def is_root(self) -> bool:
        return self.id == ROOT_NODE_ID

    def path_string(self, delimiter: str) -> str:
        return delimiter.join(self.full_path)

    def to_api_dict(self, verbose: bool = False) -> Dict[str, Any]:
        """生成对外 API 使用的精简结构，``verbose`` 时附带表特有字段。"""
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "fullpath": self.path_string(API_PATH_DELIMITER),
            "parentid": self.parent_id,
            "level": self.level,
        }
        if verbose:
            for key, value in self.extra.items():
                payload[_camelize(key)] = value
        return payload
