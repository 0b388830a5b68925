# src/find_parametric/backend/api/errors.py

"""
[职责] API 错误映射：将异常统一转换为 ErrorResponse 与 HTTP status。
[边界] 不负责 trace/request 注入（由 middleware/deps 负责）；仅对未知异常记录日志。
[上游关系] routers 捕获异常后调用本模块；app 注册的异常处理器兜底调用。
[下游关系] 返回 ErrorResponse 供前端消费（引擎错误的 detail.last_good 让 UI 保留旧结果）。
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse

from find_parametric.backend.api.schemas_http._common import ErrorResponse
from find_parametric.backend.schemas.ids import new_uuid
from find_parametric.backend.utils.errors import DomainError, to_http_error
from find_parametric.backend.utils.logging_ import get_logger, log_event

_TRACE_HEADER = "x-trace-id"  # docstring: trace header 约定
_REQUEST_HEADER = "x-request-id"  # docstring: request header 约定

logger = get_logger("api.errors")


def _ensure_trace_id(trace_id: Optional[str]) -> str:
    raw = str(trace_id or "").strip()
    if raw:
        return raw  # docstring: 保留上游 trace_id
    return str(new_uuid())  # docstring: 无 trace_id 时生成兜底


def to_error_response(
    error: Exception,
    *,
    trace_id: Optional[str] = None,
) -> Tuple[int, ErrorResponse]:
    """
    [职责] 将异常转换为 (status_code, ErrorResponse)。
    [边界] 不注入 request_id；不写 header。
    """
    resolved_trace_id = _ensure_trace_id(trace_id)
    status_code, payload = to_http_error(error, trace_id=resolved_trace_id)  # docstring: 领域错误映射
    return status_code, ErrorResponse.model_validate(payload)


def to_json_response(
    error: Exception,
    *,
    trace_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> JSONResponse:
    """
    [职责] 将异常转换为 JSONResponse（含 header 透传）。
    [边界] 不修改 error 语义；非 DomainError 记录一次 ERROR 日志（含堆栈）。
    """
    if not isinstance(error, DomainError):
        log_event(
            logger,
            logging.ERROR,
            "api.unhandled_error",
            context={"trace_id": trace_id, "request_id": request_id},
            fields={"error_type": type(error).__name__},
            exc_info=error,
        )

    status_code, response = to_error_response(error, trace_id=trace_id)
    content: Dict[str, Any] = response.model_dump(mode="json")

    headers: Dict[str, str] = {}
    if trace_id:
        headers[_TRACE_HEADER] = str(trace_id)  # docstring: 回写 trace_id header
    if request_id:
        headers[_REQUEST_HEADER] = str(request_id)  # docstring: 回写 request_id header

    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Exception handler for DomainError raised outside router bodies (dependencies)."""
    return to_json_response(
        exc,
        trace_id=getattr(request.state, "trace_id", None),
        request_id=getattr(request.state, "request_id", None),
    )
