# src/find_parametric/backend/api/middleware.py

"""
[职责] API Middleware：注入 trace_id/request_id 与请求耗时统计。
[边界] 不做业务逻辑与异常处理；不重算 pipeline timing。
[上游关系] FastAPI 应用注册本 middleware。
[下游关系] deps/routers 读取 request.state.trace_context 与 timing_ms。
"""

from __future__ import annotations

import time
from typing import Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from find_parametric.backend.schemas.audit import TraceContext
from find_parametric.backend.schemas.ids import UUIDStr, new_uuid
from find_parametric.backend.utils.constants import TIMING_TOTAL_MS_KEY

_TRACE_HEADER = "x-trace-id"
_REQUEST_HEADER = "x-request-id"
_PARENT_HEADER = "x-parent-request-id"  # docstring: parent request header（可选）


def _resolve_header_id(value: Optional[str]) -> Optional[str]:
    raw = str(value or "").strip()
    return raw or None


class TraceContextMiddleware(BaseHTTPMiddleware):
    """
    [职责] 注入 trace/request id，并记录 request 总耗时。
    [边界] 不捕获异常；错误响应由 routers/errors.py 生成。
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_ts = time.perf_counter()

        trace_id = _resolve_header_id(request.headers.get(_TRACE_HEADER)) or str(new_uuid())
        request_id = _resolve_header_id(request.headers.get(_REQUEST_HEADER)) or str(new_uuid())
        parent_request_id = _resolve_header_id(request.headers.get(_PARENT_HEADER))

        request.state.trace_context = TraceContext(
            trace_id=UUIDStr(trace_id),
            request_id=UUIDStr(request_id),
            parent_request_id=UUIDStr(parent_request_id) if parent_request_id else None,
            tags={},
        )
        request.state.trace_id = trace_id
        request.state.request_id = request_id
        request.state.parent_request_id = parent_request_id

        try:
            response = await call_next(request)
        finally:
            total_ms = (time.perf_counter() - start_ts) * 1000.0
            request.state.timing_ms = {TIMING_TOTAL_MS_KEY: total_ms}

        response.headers[_TRACE_HEADER] = trace_id
        response.headers[_REQUEST_HEADER] = request_id
        return response
