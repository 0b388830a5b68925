# src/find_parametric/backend/schemas/audit.py

"""
[职责] Audit 契约层：trace/request 标识与 timing 快照等可观测字段。
[边界] 不负责日志落盘（由 utils/logging_ 负责）；仅提供结构化字段定义。
[上游关系] api/middleware 在一次 HTTP 请求中生成 trace_id/request_id。
[下游关系] services 的 log_event 与错误响应头引用这些字段。
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .ids import UUIDStr, new_uuid


class TraceContext(BaseModel):
    """
    [职责] 一次请求的追踪上下文（trace_id/request_id）。
    [边界] 仅标识与轻量 tags；不包含 span 级别细节。
    [上游关系] TraceContextMiddleware 创建；也可从前端透传 x-trace-id / x-request-id。
    [下游关系] services 日志字段与错误响应头。
    """

    model_config = ConfigDict(extra="allow")

    trace_id: UUIDStr = Field(default_factory=new_uuid)  # docstring: 全链路追踪ID
    request_id: UUIDStr = Field(default_factory=new_uuid)  # docstring: 单次 HTTP 请求ID

    parent_request_id: Optional[UUIDStr] = Field(default=None)  # docstring: 上游请求ID
    tags: Dict[str, Any] = Field(default_factory=dict)  # docstring: 扩展 tags（method/path 等）
