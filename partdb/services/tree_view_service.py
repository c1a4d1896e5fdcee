"""树形展示数据：为模板层构建树视图、面包屑与下拉选项。

这里只产出纯数据结构（字典/列表），不生成 HTML，转义由展示层负责。
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from partdb.core.constants import MASKED_TEXT, ROOT_NODE_ID
from partdb.core.enums import StructuralOperationEnum
from partdb.schemas.node import NodeSnapshot
from partdb.schemas.subject import Subject
from partdb.services.tree_store import TreeStore


def _href(page: str, parameter: str, node_id: int) -> str:
    return f"{page}?{parameter}={node_id}"


class TreeViewService:
    """封装树视图、面包屑与选项列表的构建。"""

    def build_tree(
        self,
        db: Session,
        subject: Subject,
        store: TreeStore,
        node_id: Any = ROOT_NODE_ID,
        *,
        page: str,
        parameter: str,
        show_root: bool = False,
        root_name: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """返回 bootstrap-treeview 所需的节点列表（``text``/``href``/``nodes``）。"""
        start = store.get_node(db, subject, node_id)

        # 一次先序查询后在内存中组装树
        children_map: Dict[int, List[NodeSnapshot]] = defaultdict(list)
        for item in store.get_children(db, subject, node_id, recursive=True):
            children_map[item.parent_id if item.parent_id is not None else ROOT_NODE_ID].append(item)

        def build(node: NodeSnapshot) -> Dict[str, Any]:
            payload: Dict[str, Any] = {"text": node.name, "href": _href(page, parameter, node.id)}
            nodes = [build(child) for child in children_map.get(node.id, [])]
            if nodes:
                payload["nodes"] = nodes
            return payload

        nodes = [build(child) for child in children_map.get(start.id, [])]
        if not show_root:
            return nodes

        label = root_name if (start.is_root and root_name) else start.name
        return [{"text": label, "href": _href(page, parameter, start.id), "nodes": nodes}]

    def build_breadcrumb(
        self,
        db: Session,
        subject: Subject,
        store: TreeStore,
        node_id: Any,
        *,
        page: str,
        parameter: str,
        show_root: bool = False,
        root_name: Optional[str] = None,
        element_is_link: bool = False,
    ) -> List[Dict[str, Any]]:
        """从顶层到当前节点的面包屑；当前节点标记为 ``selected``。"""
        crumbs: List[Dict[str, Any]] = []
        if show_root:
            crumbs.append({"label": root_name or store.root().name, "disabled": True})

        if not store.can(subject, StructuralOperationEnum.READ):
            crumbs.append({"label": MASKED_TEXT, "disabled": True})
            return crumbs

        node = store.get_node(db, subject, node_id)
        if node.is_root:
            return crumbs

        chain: List[NodeSnapshot] = []
        current = node
        while current.parent_id is not None and len(chain) < node.level:
            current = store.get_node(db, subject, current.parent_id)
            chain.append(current)

        for ancestor in reversed(chain):
            crumbs.append({"label": ancestor.name, "href": _href(page, parameter, ancestor.id)})

        last: Dict[str, Any] = {"label": node.name, "selected": True}
        if element_is_link:
            last["href"] = _href(page, parameter, node.id)
        crumbs.append(last)
        return crumbs

    def build_option_list(
        self,
        db: Session,
        subject: Subject,
        store: TreeStore,
        node_id: Any = ROOT_NODE_ID,
        *,
        selected_id: Optional[int] = None,
        recursive: bool = True,
        show_root: bool = True,
        root_name: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """下拉框选项，``level`` 为相对起始节点的缩进层数。"""
        start = store.get_node(db, subject, node_id)
        options: List[Dict[str, Any]] = []

        if show_root:
            root_level = start.level
            label = root_name if (start.is_root and root_name) else start.name
            options.append(
                {"value": start.id, "label": label, "level": 0, "selected": start.id == selected_id}
            )
        else:
            root_level = start.level + 1

        for item in store.get_children(db, subject, node_id, recursive=recursive):
            options.append(
                {
                    "value": item.id,
                    "label": item.name,
                    "level": item.level - root_level,
                    "selected": item.id == selected_id,
                }
            )
        return options


tree_view_service = TreeViewService()
