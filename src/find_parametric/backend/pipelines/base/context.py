# src/find_parametric/backend/pipelines/base/context.py

"""
[职责] FacetContext：facet 计算的运行上下文（engine 协作者 + 调用方 timeout + trace 标识 + 计时）。
[边界] 不持有跨请求状态；不创建/关闭 engine；不缓存结果。
[上游关系] services/sync controller 构造后传入 bucketing/values/export pipelines。
[下游关系] pipelines 从 ctx.engine 取数、以 ctx.timeout_s 约束每次引擎调用、从 ctx.timing 记录耗时。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from find_parametric.backend.engine.base import FieldStatisticsEngine
from find_parametric.backend.schemas.ids import new_uuid
from find_parametric.config import settings

from .timing import TimingCollector


@dataclass
class FacetContext:
    """
    [职责] 一次 facet 计算（或一次导出）的依赖聚合与可观测字段。
    [边界] generation 仅用于日志；是否丢弃结果由 GenerationGate 判定。
    """

    engine: FieldStatisticsEngine
    timeout_s: float = field(default_factory=lambda: float(settings.FIND_PARAMETRIC_ENGINE_TIMEOUT_S))
    trace_id: str = field(default_factory=new_uuid)
    request_id: str = field(default_factory=new_uuid)
    generation: Optional[int] = None
    timing: TimingCollector = field(default_factory=TimingCollector)
    meta: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_request(
        cls,
        engine: FieldStatisticsEngine,
        *,
        trace_id: Optional[str] = None,
        request_id: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ) -> "FacetContext":
        """Build a context for one HTTP request (ids come from TraceContext)."""
        return cls(
            engine=engine,
            timeout_s=float(timeout_s if timeout_s is not None else settings.FIND_PARAMETRIC_ENGINE_TIMEOUT_S),
            trace_id=trace_id or new_uuid(),
            request_id=request_id or new_uuid(),
        )

    def timing_ms(self) -> Dict[str, float]:
        return self.timing.to_dict()
