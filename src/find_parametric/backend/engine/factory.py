# src/find_parametric/backend/engine/factory.py

"""
[职责] 按配置选择引擎实现：配置 FIND_PARAMETRIC_ENGINE_URL 时使用 HttpEngineClient，否则使用 InMemoryEngine。
[边界] 不缓存实例（由 app 生命周期持有）；种子文件缺失时报错而不是静默使用空引擎。
[上游关系] api/app.create_app 启动时调用。
[下游关系] app.state.engine 供 deps.get_engine 注入。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from find_parametric.backend.utils.errors import BadRequestError
from find_parametric.backend.utils.logging_ import get_logger, log_event
from find_parametric.config import Settings, settings as default_settings

from .base import FieldStatisticsEngine
from .http import HttpEngineClient
from .memory import InMemoryEngine


logger = get_logger("engine.factory")


def build_engine(cfg: Optional[Settings] = None) -> FieldStatisticsEngine:
    s = cfg or default_settings
    url = str(s.FIND_PARAMETRIC_ENGINE_URL or "").strip()
    if url:
        log_event(logger, logging.INFO, "engine.select", fields={"engine": "http", "base_url": url})
        return HttpEngineClient(url, timeout_s=float(s.FIND_PARAMETRIC_ENGINE_TIMEOUT_S))

    seed = str(s.FIND_PARAMETRIC_ENGINE_SEED_PATH or "").strip()
    if seed:
        path = Path(seed)
        if not path.is_absolute():
            path = s.project_root / path  # docstring: 相对路径以仓库根为基准
        if not path.exists():
            raise BadRequestError(message="engine seed file not found", detail={"path": str(path)})
        log_event(logger, logging.INFO, "engine.select", fields={"engine": "memory", "seed_path": str(path)})
        return InMemoryEngine.from_json_file(str(path))

    log_event(logger, logging.INFO, "engine.select", fields={"engine": "memory", "seed_path": None})
    return InMemoryEngine([])
