# src/find_parametric/backend/db/engine.py

"""
[职责] 数据库引擎与会话工厂：创建 AsyncEngine / sessionmaker，以及 init_db / drop_db。
[边界] 不包含 ORM Model 定义；不包含业务事务编排（由 service/repo 负责）。
[上游关系] config.py / 环境变量提供数据库连接配置；应用启动与 scripts/init_db 调用 init_db。
[下游关系] api/deps.py（SessionLocal）、repo 层依赖 AsyncSession；tests 使用临时 sqlite engine。
"""

from __future__ import annotations

import os

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from find_parametric.config import LOCAL_ROOT, settings

from .base import Base


def _default_db_url() -> str:
    """Repo-local sqlite file (.Local/find_parametric.db)."""
    db_path = LOCAL_ROOT / "find_parametric.db"
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{db_path.as_posix()}"


def resolve_db_url(override: str | None = None) -> str:
    """
    Priority:
        1) explicit override
        2) settings: FIND_PARAMETRIC_DATABASE_URL (loads .env)
        3) env: FIND_PARAMETRIC_DATABASE_URL
        4) env: DATABASE_URL
        5) fallback: repo-local sqlite file
    """
    if override:
        return override
    s_url = str(settings.FIND_PARAMETRIC_DATABASE_URL or "").strip()
    if s_url:
        return s_url
    env_url = os.getenv("FIND_PARAMETRIC_DATABASE_URL", "").strip()
    if env_url:
        return env_url
    env_url2 = os.getenv("DATABASE_URL", "").strip()
    if env_url2:
        return env_url2
    return _default_db_url()


def create_engine(*, url: str | None = None, echo: bool | None = None) -> AsyncEngine:
    """Create AsyncEngine (sqlite via aiosqlite by default)."""
    db_echo = echo if echo is not None else (os.getenv("SQL_ECHO", "0") == "1")
    return create_async_engine(
        resolve_db_url(url),
        echo=db_echo,
        future=True,
        pool_pre_ping=True,
    )


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async sessionmaker."""  # docstring: expire_on_commit=False，service 层提交后仍可读取属性
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


ENGINE: AsyncEngine = create_engine()  # docstring: 默认全局引擎
SessionLocal: async_sessionmaker[AsyncSession] = create_sessionmaker(ENGINE)  # docstring: 默认会话工厂


async def init_db(*, engine: AsyncEngine | None = None) -> None:
    """Create tables (create_all); models are imported to register metadata."""
    from . import models  # noqa: F401

    eng = engine or ENGINE
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db(*, engine: AsyncEngine | None = None) -> None:
    """Drop all tables (local/dev/tests only)."""
    from . import models  # noqa: F401

    eng = engine or ENGINE
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
