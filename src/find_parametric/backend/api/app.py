# src/find_parametric/backend/api/app.py

"""
[职责] FastAPI 应用装配：middleware、routers、领域异常处理器与 engine 生命周期。
[边界] 不执行业务逻辑；engine 可注入（测试），未注入时按配置构建并在关闭时释放。
[上游关系] backend/main.py 与测试调用 create_app。
[下游关系] routers 通过 deps.get_engine / get_display_values 读取 app.state。
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from find_parametric.backend.api.errors import domain_error_handler
from find_parametric.backend.api.middleware import TraceContextMiddleware
from find_parametric.backend.api.routers.export import router as export_router
from find_parametric.backend.api.routers.health import router as health_router
from find_parametric.backend.api.routers.parametric import router as parametric_router
from find_parametric.backend.api.routers.snapshots import router as snapshots_router
from find_parametric.backend.engine.base import FieldStatisticsEngine
from find_parametric.backend.engine.factory import build_engine
from find_parametric.backend.pipelines.sync.labels import ParametricDisplayValues
from find_parametric.backend.utils.errors import DomainError
from find_parametric.backend.utils.logging_ import configure_logging, get_logger, log_event


logger = get_logger("api.app")


def create_app(
    *,
    engine: Optional[FieldStatisticsEngine] = None,
    display_values: Optional[ParametricDisplayValues] = None,
    init_schema: bool = False,
) -> FastAPI:
    """
    [职责] 创建应用实例。
    [边界] init_schema=True 时启动阶段执行 init_db（本地开发）；生产环境由 scripts/init_db 负责。
    """

    configure_logging()
    owns_engine = engine is None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.engine is None:
            app.state.engine = build_engine()
        if init_schema:
            from find_parametric.backend.db.engine import init_db

            await init_db()
        log_event(logger, logging.INFO, "app.startup", fields={"engine": type(app.state.engine).__name__})
        try:
            yield
        finally:
            if owns_engine:
                await app.state.engine.aclose()
            log_event(logger, logging.INFO, "app.shutdown")

    app = FastAPI(title="find-parametric", version="0.1.0", lifespan=lifespan)
    app.state.engine = engine
    app.state.display_values = display_values or ParametricDisplayValues()

    app.add_middleware(TraceContextMiddleware)
    app.add_exception_handler(DomainError, domain_error_handler)
    app.include_router(health_router)
    app.include_router(parametric_router)
    app.include_router(export_router)
    app.include_router(snapshots_router)
    return app
