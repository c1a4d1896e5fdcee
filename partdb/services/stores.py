"""树存储注册中心：按表名选择对应的树存储实例。"""

from __future__ import annotations

from typing import Dict

from partdb.core.exceptions import raise_consistency_fault
from partdb.services.storelocation_service import storelocation_store
from partdb.services.tree_store import (
    TreeStore,
    category_store,
    device_store,
    footprint_store,
    manufacturer_store,
)

STORE_REGISTRY: Dict[str, TreeStore] = {
    store.tablename: store
    for store in (
        category_store,
        storelocation_store,
        footprint_store,
        manufacturer_store,
        device_store,
    )
}


def get_store(table: str) -> TreeStore:
    """根据表名返回树存储；未知表名属于调用方的编码错误。"""
    try:
        return STORE_REGISTRY[table]
    except KeyError:
        available = ", ".join(STORE_REGISTRY)
        raise_consistency_fault("unknown structural table %r, available: %s", table, available)


__all__ = ["STORE_REGISTRY", "get_store"]
