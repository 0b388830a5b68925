# src/find_parametric/backend/api/routers/health.py

"""
[职责] Health Router：提供服务健康检查（DB / engine）与版本摘要。
[边界] 只做轻量探测；不触发 facet 计算。
[上游关系] 运维/监控系统调用。
[下游关系] DB session 与 engine.ping。
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from find_parametric.backend.api.deps import get_engine, get_session
from find_parametric.backend.engine.base import FieldStatisticsEngine


router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(
    session: AsyncSession = Depends(get_session),
    engine: FieldStatisticsEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """检测 DB / engine 可用性；任一异常则 status=degraded。"""
    status = "ok"
    db_status: Dict[str, Any] = {"ok": True}
    engine_status: Dict[str, Any] = {"ok": True, "type": type(engine).__name__}

    try:
        await session.execute(text("SELECT 1"))  # docstring: DB ping（最小读）
    except Exception as exc:
        db_status["ok"] = False
        db_status["error"] = f"{exc.__class__.__name__}: {exc}"

    try:
        engine_status["ok"] = bool(await engine.ping())
    except Exception as exc:
        engine_status["ok"] = False
        engine_status["error"] = f"{exc.__class__.__name__}: {exc}"

    if not db_status.get("ok") or not engine_status.get("ok"):
        status = "degraded"

    return {
        "status": status,
        "db": db_status,
        "engine": engine_status,
        "version": {"api": "v1"},
    }
