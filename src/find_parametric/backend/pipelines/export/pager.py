# src/find_parametric/backend/pipelines/export/pager.py
"""
[职责] ExportPager：按 restrictions 顺序分页拉取全部结果并流式写入 sink（表头只写一次）。
[边界] 共 ceil(total/page_size) 次顺序请求，第 i 页请求 [i*page_size, (i+1)*page_size)；
      可重试错误按 retries 重试；最终失败抛 ExportIncompleteError（sink 已部分写入，调用方必须丢弃）。
[上游关系] services/export_service.py。
[下游关系] FieldStatisticsEngine.query_documents、ExportStrategy。
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import BinaryIO, List, Sequence

from find_parametric.backend.pipelines.base.context import FacetContext
from find_parametric.backend.schemas.export import ResultDocument
from find_parametric.backend.schemas.restrictions import QueryRestrictions
from find_parametric.backend.utils.errors import DomainError, ExportIncompleteError
from find_parametric.backend.utils.logging_ import get_logger, log_event

from .strategies import METADATA_NODES, ExportStrategy


logger = get_logger("pipelines.export")


@dataclass(frozen=True)
class ExportSummary:
    pages: int
    rows: int
    field_names: List[str]


def page_count(total_results: int, page_size: int) -> int:
    if page_size <= 0:
        raise ValueError("page_size must be > 0")
    return int(math.ceil(max(total_results, 0) / page_size))


async def _fetch_page(
    ctx: FacetContext,
    restrictions: QueryRestrictions,
    *,
    offset: int,
    page_size: int,
    fields: Sequence[str],
    retries: int,
) -> List[ResultDocument]:
    attempt = 0
    while True:
        try:
            with ctx.timing.stage("engine"):
                return await ctx.engine.query_documents(
                    restrictions,
                    start=offset,
                    max_results=page_size,
                    fields=fields,
                    timeout=ctx.timeout_s,
                )
        except DomainError as exc:
            if not exc.retryable or attempt >= retries:
                raise
            attempt += 1
            log_event(
                logger,
                logging.WARNING,
                "export.page.retry",
                context=ctx,
                fields={"offset": offset, "attempt": attempt, "error_code": exc.error_code},
            )


async def export_all(
    ctx: FacetContext,
    restrictions: QueryRestrictions,
    fields: Sequence[str],
    total_results: int,
    page_size: int,
    sink: BinaryIO,
    *,
    strategy: ExportStrategy,
    retries: int = 2,
) -> ExportSummary:
    """
    [职责] 写表头，然后按请求顺序逐页写行。
    [边界] 不按 total_results 裁剪最后一页（引擎返回多少写多少）；页请求失败即终止整个导出。
    """

    names = strategy.field_names(METADATA_NODES, fields)
    strategy.write_header(sink, names)

    pages = page_count(total_results, page_size)
    rows = 0
    for index in range(pages):
        offset = index * page_size
        try:
            documents = await _fetch_page(
                ctx,
                restrictions,
                offset=offset,
                page_size=page_size,
                fields=fields,
                retries=retries,
            )
        except DomainError as exc:
            raise ExportIncompleteError(
                message="export page request failed",
                detail={
                    "pages_written": index,
                    "pages_total": pages,
                    "offset": offset,
                    "cause_code": exc.error_code,
                },
                cause=exc,
            ) from exc
        with ctx.timing.stage("encode"):
            for document in documents:
                strategy.write_row(sink, document, names)
                rows += 1

    return ExportSummary(pages=pages, rows=rows, field_names=list(names))
