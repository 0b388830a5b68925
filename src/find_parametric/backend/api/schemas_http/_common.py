# src/find_parametric/backend/api/schemas_http/_common.py

"""
[职责] HTTP Schema 公共组件：ErrorResponse 与 camelCase 输出基类，作为 API 契约基础。
[边界] 仅描述 HTTP 输入/输出结构；不负责 trace 注入、异常映射或业务逻辑。
[上游关系] api/errors 将 DomainError 映射到 ErrorResponse。
[下游关系] api/schemas_http/{parametric,export,snapshots} 复用本模块结构。
"""

from __future__ import annotations

from typing import Any, Dict, NewType

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


TraceId = NewType("TraceId", str)  # docstring: trace_id（跨请求链路）

ErrorDetail = Dict[str, Any]  # docstring: ErrorResponse.error.detail 结构（必须 JSON-safe）


class CamelModel(BaseModel):
    """HTTP 契约基类：camelCase 别名，同时接受 snake_case 输入。"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorInfo(BaseModel):
    """
    [职责] ErrorInfo：统一错误载体（code/message/trace_id/detail/retryable）。
    [边界] code 为标准码（bad_request 等）或领域码（AREA__REASON）。
    """

    model_config = ConfigDict(extra="forbid")  # docstring: 锁死错误字段，避免 drift

    code: str = Field(..., min_length=1)  # docstring: 错误码
    message: str = Field(..., min_length=1)  # docstring: 人类可读错误信息
    trace_id: TraceId = Field(...)  # docstring: 全链路追踪ID（由 middleware 注入）
    detail: ErrorDetail = Field(default_factory=dict)  # docstring: 结构化细节（可含 last_good）
    retryable: bool = Field(default=False)  # docstring: 调用方是否可重试


class ErrorResponse(BaseModel):
    """ErrorResponse：HTTP 错误响应的顶层包裹结构（trace/request id 同时由 header 透传）。"""

    model_config = ConfigDict(extra="forbid")

    error: ErrorInfo = Field(...)
