"""标签文本：把标签模板中的占位符替换为节点与当前用户的信息。

PDF 排版不在此处；这里只负责逐行生成替换后的文本与条码内容。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Optional

from sqlalchemy.orm import Session

from partdb.core.config import get_settings
from partdb.core.constants import (
    BARCODE_C39_PREFIX,
    BARCODE_C39_WIDTH,
    BARCODE_QR_TEMPLATE,
    ROOT_NODE_ID,
)
from partdb.core.enums import BarcodeTypeEnum
from partdb.core.exceptions import ValidationError
from partdb.core.timezone import format_datetime, now
from partdb.schemas.node import NodeSnapshot
from partdb.schemas.subject import Subject
from partdb.services.tree_store import TreeStore


class LabelService:
    def barcode_content(self, node: NodeSnapshot, barcode_type: str = BarcodeTypeEnum.C39.value) -> str:
        """C39 为 ``$L`` 加 5 位补零 ID，QR 为固定前缀加 ID。"""
        try:
            kind = BarcodeTypeEnum(barcode_type)
        except ValueError:
            raise ValidationError(f"不支持的条码类型：{barcode_type}", field="barcode_type")
        if kind == BarcodeTypeEnum.C39:
            return BARCODE_C39_PREFIX + str(node.id).zfill(BARCODE_C39_WIDTH)
        return BARCODE_QR_TEMPLATE.format(id=node.id)

    def replace_global_placeholders(
        self,
        text: str,
        subject: Subject,
        *,
        timestamp: Optional[datetime] = None,
    ) -> str:
        settings = get_settings()
        replacements = {
            "%USERNAME%": subject.name,
            "%USERNAME_FULL%": subject.full_name or subject.name,
            "%DATETIME%": format_datetime(timestamp or now()) or "",
            "%INSTALL_NAME%": settings.install_name,
        }
        for placeholder, value in replacements.items():
            text = text.replace(placeholder, value)
        return text

    def replace_node_placeholders(
        self,
        db: Session,
        subject: Subject,
        store: TreeStore,
        node_id: Any,
        text: str,
    ) -> str:
        """替换节点相关占位符；上级为虚拟根节点时，上级相关占位符替换为空串。"""
        node = store.get_node(db, subject, node_id)
        delimiter = get_settings().path_delimiter

        parent_name = ""
        parent_path = ""
        if node.parent_id is not None and node.parent_id > ROOT_NODE_ID:
            parent = store.get_node(db, subject, node.parent_id)
            parent_name = parent.name
            parent_path = parent.path_string(delimiter)

        replacements = {
            "%ID%": str(node.id),
            "%NAME%": node.name,
            "%COMMENT%": node.comment,
            "%FULL_PATH%": node.path_string(delimiter),
            "%PARENT_NAME%": parent_name,
            "%PARENT_FULL_PATH%": parent_path,
        }
        if "is_full" in node.extra:
            replacements["%IS_FULL%"] = "是" if node.extra["is_full"] else "否"

        for placeholder, value in replacements.items():
            text = text.replace(placeholder, value)

        # 只剩一个孤立的 "-" 说明没有有效信息
        if text.strip() == "-":
            return ""
        return text

    def generate_lines(
        self,
        db: Session,
        subject: Subject,
        store: TreeStore,
        node_id: Any,
        lines: Iterable[str],
    ) -> List[str]:
        """逐行替换：先替换全局占位符，再替换节点占位符。"""
        timestamp = now()
        result: List[str] = []
        for line in lines:
            line = self.replace_global_placeholders(line, subject, timestamp=timestamp)
            result.append(self.replace_node_placeholders(db, subject, store, node_id, line))
        return result


label_service = LabelService()
