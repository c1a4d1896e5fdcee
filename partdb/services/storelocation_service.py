"""存储位置的树存储：在通用树逻辑之上增加 `is_full` 标记。"""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from partdb.core.enums import PermissionCategoryEnum
from partdb.models.storelocation import Storelocation
from partdb.services.tree_store import TreeStore

_FALSE_TOKENS = {"", "0", "false", "no", "off"}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_TOKENS
    return bool(value)


class StorelocationStore(TreeStore[Storelocation]):
    extra_fields = ("is_full",)
    root_extra = {"is_full": False}

    def validate(
        self,
        db: Session,
        values: Dict[str, Any],
        is_new: bool,
        existing: Optional[Storelocation] = None,
    ) -> Dict[str, Any]:
        normalized = super().validate(db, values, is_new, existing)
        normalized["is_full"] = _as_bool(normalized.get("is_full", False))
        return normalized


storelocation_store = StorelocationStore(Storelocation, PermissionCategoryEnum.STORELOCATIONS)
