# src/find_parametric/backend/api/routers/export.py

"""
[职责] Export Router：按格式导出当前 restrictions 下的全部结果（csv / json lines）。
[边界] 成功时一次性返回完整字节内容；导出不完整时返回错误响应而不是部分文件。
[上游关系] 前端 "Export" 操作。
[下游关系] export_service。
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from find_parametric.backend.api.deps import get_engine, get_trace_context
from find_parametric.backend.api.errors import to_json_response
from find_parametric.backend.api.schemas_http.export import ExportBody
from find_parametric.backend.engine.base import FieldStatisticsEngine
from find_parametric.backend.schemas.audit import TraceContext
from find_parametric.backend.services.export_service import export_results
from find_parametric.backend.utils.constants import EXPORT_PATH


router = APIRouter(prefix=EXPORT_PATH, tags=["export"])


@router.post("/{export_format}")
async def export(
    export_format: str,
    body: ExportBody,
    engine: FieldStatisticsEngine = Depends(get_engine),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Response:
    try:
        result = await export_results(
            engine=engine,
            export_format=export_format,
            request=body.to_request(),
            trace_context=trace_context,
        )
    except Exception as exc:
        return to_json_response(
            exc,
            trace_id=str(trace_context.trace_id),
            request_id=str(trace_context.request_id),
        )
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "x-export-pages": str(result.summary.pages),
            "x-export-rows": str(result.summary.rows),
        },
    )
