# src/find_parametric/backend/pipelines/export/strategies.py
"""
[职责] 导出格式策略：每种格式实现 field_names / write_header / write_row，按格式在调用时选择。
[边界] 仅负责把结果行编码写入字节 sink；不发起引擎请求（由 pager 负责）。
[上游关系] pipelines/export/pager.py、services/export_service.py。
[下游关系] HTTP 响应字节流（csv / json lines）。
"""

from __future__ import annotations

import csv
import io
import json
from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Dict, List, Sequence, Tuple

from find_parametric.backend.schemas.export import ExportFormat, ResultDocument
from find_parametric.backend.utils.errors import BadRequestError


MetadataNode = Tuple[str, str]  # docstring: (字段 id, 列标题)

METADATA_NODES: Tuple[MetadataNode, ...] = (
    ("reference", "Reference"),
    ("database", "Database"),
    ("title", "Title"),
    ("summary", "Summary"),
    ("date", "Date"),
    ("weight", "Weight"),
)

MULTI_VALUE_SEPARATOR = ", "


def document_value(document: ResultDocument, field_id: str) -> Any:
    """Metadata attribute, or a custom field's values."""
    for node_id, _ in METADATA_NODES:
        if node_id == field_id:
            return getattr(document, node_id)
    values = document.fields.get(field_id)
    if not values:
        return None
    return values if len(values) > 1 else values[0]


class ExportStrategy(ABC):
    """
    [职责] 单一导出格式的编码能力。
    [边界] field_names 先输出元数据列（按节点顺序、受 selected 过滤），再输出选中的自定义字段。
    """

    export_format: ExportFormat
    media_type: str

    def field_names(self, nodes: Sequence[MetadataNode], selected: Sequence[str]) -> List[str]:
        node_ids = [node_id for node_id, _ in nodes]
        if not selected:
            return node_ids
        chosen = [node_id for node_id in node_ids if node_id in selected]
        chosen.extend(f for f in dict.fromkeys(selected) if f not in node_ids)
        return chosen

    @abstractmethod
    def write_header(self, sink: BinaryIO, names: Sequence[str]) -> None:
        raise NotImplementedError

    @abstractmethod
    def write_row(self, sink: BinaryIO, document: ResultDocument, names: Sequence[str]) -> None:
        raise NotImplementedError


class CsvExportStrategy(ExportStrategy):
    """CSV（UTF-8 BOM，便于表格软件识别编码）；多值字段以 ", " 连接。"""

    export_format = ExportFormat.CSV
    media_type = "text/csv"

    _titles: Dict[str, str] = dict(METADATA_NODES)

    def _encode(self, cells: Sequence[Any]) -> bytes:
        buf = io.StringIO()
        csv.writer(buf, lineterminator="\r\n").writerow(["" if c is None else c for c in cells])
        return buf.getvalue().encode("utf-8")

    def write_header(self, sink: BinaryIO, names: Sequence[str]) -> None:
        sink.write("\ufeff".encode("utf-8"))
        sink.write(self._encode([self._titles.get(n, n) for n in names]))

    def write_row(self, sink: BinaryIO, document: ResultDocument, names: Sequence[str]) -> None:
        cells = []
        for name in names:
            value = document_value(document, name)
            if isinstance(value, list):
                value = MULTI_VALUE_SEPARATOR.join(str(v) for v in value)
            cells.append(value)
        sink.write(self._encode(cells))


class JsonLinesExportStrategy(ExportStrategy):
    """JSON Lines：首行为列名数组，其后每行一个对象。"""

    export_format = ExportFormat.JSON
    media_type = "application/x-ndjson"

    def write_header(self, sink: BinaryIO, names: Sequence[str]) -> None:
        sink.write((json.dumps(list(names), ensure_ascii=False) + "\n").encode("utf-8"))

    def write_row(self, sink: BinaryIO, document: ResultDocument, names: Sequence[str]) -> None:
        row = {name: document_value(document, name) for name in names}
        sink.write((json.dumps(row, ensure_ascii=False, default=str) + "\n").encode("utf-8"))


EXPORT_STRATEGIES: Dict[ExportFormat, ExportStrategy] = {
    s.export_format: s for s in (CsvExportStrategy(), JsonLinesExportStrategy())
}


def get_strategy(export_format: Any) -> ExportStrategy:
    try:
        return EXPORT_STRATEGIES[ExportFormat(export_format)]
    except (KeyError, ValueError) as exc:
        raise BadRequestError(
            message="unsupported export format",
            detail={"format": str(export_format), "supported": [f.value for f in EXPORT_STRATEGIES]},
            cause=exc,
        ) from exc
