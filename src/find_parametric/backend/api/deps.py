# src/find_parametric/backend/api/deps.py

"""
[职责] API 依赖装配：提供 session、trace_context、engine、显示名配置与 restriction 查询参数注入。
[边界] 不做业务逻辑；不提交事务；restriction 参数只收集原值，校验在 service 层完成。
[上游关系] FastAPI 路由层调用依赖注入。
[下游关系] services/routers 通过本模块获取依赖实例。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from find_parametric.backend.db.engine import SessionLocal
from find_parametric.backend.engine.base import FieldStatisticsEngine
from find_parametric.backend.pipelines.sync.labels import ParametricDisplayValues
from find_parametric.backend.schemas.audit import TraceContext
from find_parametric.backend.schemas.ids import UUIDStr, new_uuid
from find_parametric.backend.utils.constants import (
    DATABASES_PARAM,
    DEFAULT_FIELD_TEXT,
    DEFAULT_MIN_SCORE,
    DEFAULT_QUERY_TEXT,
    FIELD_TEXT_PARAM,
    MAX_DATE_PARAM,
    MIN_DATE_PARAM,
    MIN_SCORE_PARAM,
    QUERY_TEXT_PARAM,
    STATE_TOKEN_PARAM,
)
from find_parametric.backend.utils.errors import InternalError


async def get_session() -> AsyncIterator[AsyncSession]:
    """
    [职责] 获取数据库会话（每个 request 一个 session）。
    [边界] 不提交/回滚事务；仅负责创建与关闭。
    """
    async with SessionLocal() as session:
        yield session  # docstring: 输出 session 给下游使用


def get_trace_context(request: Request) -> TraceContext:
    """
    [职责] 获取或创建 TraceContext（优先使用 middleware 注入）。
    [边界] 不写入日志；不校验 UUID 格式。
    """
    existing = getattr(request.state, "trace_context", None)
    if isinstance(existing, TraceContext):
        return existing  # docstring: 复用 middleware 注入的 TraceContext

    trace_id = str(getattr(request.state, "trace_id", "") or "").strip() or str(new_uuid())
    request_id = str(getattr(request.state, "request_id", "") or "").strip() or str(new_uuid())
    ctx = TraceContext(
        trace_id=UUIDStr(trace_id),
        request_id=UUIDStr(request_id),
        parent_request_id=None,
        tags={},
    )  # docstring: 兜底构造 TraceContext
    request.state.trace_context = ctx
    request.state.trace_id = trace_id
    request.state.request_id = request_id
    return ctx


def get_engine(request: Request) -> FieldStatisticsEngine:
    """app.state.engine（create_app 启动时装配）。"""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise InternalError(message="engine is not configured")
    return engine


def get_display_values(request: Request) -> ParametricDisplayValues:
    display = getattr(request.app.state, "display_values", None)
    return display if isinstance(display, ParametricDisplayValues) else ParametricDisplayValues()


def get_restriction_params(
    query_text: str = Query(DEFAULT_QUERY_TEXT, alias=QUERY_TEXT_PARAM),
    field_text: str = Query(DEFAULT_FIELD_TEXT, alias=FIELD_TEXT_PARAM),
    databases: List[str] = Query(default=[], alias=DATABASES_PARAM),
    min_date: Optional[datetime] = Query(None, alias=MIN_DATE_PARAM),
    max_date: Optional[datetime] = Query(None, alias=MAX_DATE_PARAM),
    min_score: int = Query(DEFAULT_MIN_SCORE, alias=MIN_SCORE_PARAM),
    state_tokens: List[str] = Query(default=[], alias=STATE_TOKEN_PARAM),
) -> Dict[str, Any]:
    """
    [职责] 收集 restriction 查询参数（参数名与前端约定一致）。
    [边界] 不构造 QueryRestrictions；由 parametric_service.build_restrictions 校验并映射错误。
    """
    return {
        "query_text": query_text,
        "field_text": field_text,
        "databases": list(databases),
        "min_date": min_date,
        "max_date": max_date,
        "min_score": min_score,
        "state_tokens": list(state_tokens),
    }
