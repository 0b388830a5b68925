# src/find_parametric/backend/services/export_service.py

"""
[职责] export_service：按格式选择导出策略，驱动 ExportPager 写入内存缓冲，成功后整体返回字节内容。
[边界] 部分写入的导出视为不可用：任何失败都丢弃缓冲并抛出，不返回半截内容；不做跨请求缓存。
[上游关系] api/routers/export.py 调用。
[下游关系] pipelines/export（strategies / pager）、FieldStatisticsEngine.query_documents。
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from find_parametric.backend.engine.base import FieldStatisticsEngine
from find_parametric.backend.pipelines.base.context import FacetContext
from find_parametric.backend.pipelines.export.pager import ExportSummary, export_all
from find_parametric.backend.pipelines.export.strategies import get_strategy
from find_parametric.backend.schemas.audit import TraceContext
from find_parametric.backend.schemas.export import ExportRequest
from find_parametric.backend.utils.constants import EXPORT_FORMAT_KEY
from find_parametric.backend.utils.errors import DomainError
from find_parametric.backend.utils.logging_ import get_logger, log_event
from find_parametric.config import settings


logger = get_logger("services.export")

EXPORT_FILE_STEM = "query-results"  # docstring: 下载文件名前缀


@dataclass
class ExportResult:
    content: bytes
    media_type: str
    filename: str
    summary: ExportSummary
    timing_ms: Dict[str, float] = field(default_factory=dict)


async def export_results(
    *,
    engine: FieldStatisticsEngine,
    export_format: Any,
    request: ExportRequest,
    trace_context: TraceContext,
    page_size: Optional[int] = None,
    retries: Optional[int] = None,
) -> ExportResult:
    """
    [职责] 执行一次完整导出并返回字节内容与摘要。
    [边界] 格式不支持 -> BadRequestError；分页失败 -> ExportIncompleteError（缓冲被丢弃）。
    """

    strategy = get_strategy(export_format)
    ctx = FacetContext.for_request(
        engine,
        trace_id=str(trace_context.trace_id),
        request_id=str(trace_context.request_id),
    )
    size = int(page_size or request.page_size or settings.FIND_PARAMETRIC_EXPORT_PAGE_SIZE)
    attempts = int(retries if retries is not None else settings.FIND_PARAMETRIC_ENGINE_RETRIES)

    fields = {
        EXPORT_FORMAT_KEY: strategy.export_format.value,
        "total_results": request.total_results,
        "page_size": size,
    }
    log_event(logger, logging.INFO, "export.start", context=ctx, fields=fields)

    buffer = io.BytesIO()
    try:
        summary = await export_all(
            ctx,
            request.restrictions,
            request.selected_fields,
            request.total_results,
            size,
            buffer,
            strategy=strategy,
            retries=attempts,
        )
    except Exception as exc:
        buffer.close()  # docstring: 丢弃部分写入的内容
        code = exc.error_code if isinstance(exc, DomainError) else type(exc).__name__
        log_event(logger, logging.WARNING, "export.failed", context=ctx, fields={**fields, "error_code": code})
        raise

    content = buffer.getvalue()
    log_event(
        logger,
        logging.INFO,
        "export.done",
        context=ctx,
        fields={**fields, "pages": summary.pages, "rows": summary.rows, "bytes": len(content)},
    )
    return ExportResult(
        content=content,
        media_type=strategy.media_type,
        filename=f"{EXPORT_FILE_STEM}.{strategy.export_format.value}",
        summary=summary,
        timing_ms=ctx.timing_ms(),
    )
