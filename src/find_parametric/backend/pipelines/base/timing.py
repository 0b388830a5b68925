# src/find_parametric/backend/pipelines/base/timing.py

"""
[职责] 阶段计时：为 facet 计算（engine 调用 / 分桶 / 递归解析 / 导出分页）收集毫秒耗时。
[边界] 不做 tracing/profiling；不落日志；仅产出可 JSON 序列化的 timing_ms dict。
[上游关系] pipelines 用 stage(...) 包裹各阶段。
[下游关系] services 将 timing_ms 写入完成日志。
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator

from find_parametric.backend.utils.constants import TIMING_TOTAL_KEY


def _now_ms() -> float:
    return time.perf_counter() * 1000.0


@dataclass
class TimingCollector:
    """
    [职责] 收集各阶段耗时（ms）；同名阶段累加（并发字段计算会重复进入同一阶段）。
    [边界] 单事件循环内使用；不保证线程安全。
    """

    _stages_ms: Dict[str, float] = field(default_factory=dict)
    _start_ms: float = field(default_factory=_now_ms)

    def add_ms(self, key: str, ms: float) -> None:
        k = str(key).strip()
        if not k:
            return
        self._stages_ms[k] = self._stages_ms.get(k, 0.0) + max(float(ms), 0.0)

    @contextmanager
    def stage(self, key: str) -> Iterator[None]:
        """with timing.stage("engine"): ..."""
        start = _now_ms()
        try:
            yield
        finally:
            self.add_ms(key, _now_ms() - start)

    def total_ms(self) -> float:
        return _now_ms() - self._start_ms

    def to_dict(self, *, include_total: bool = True) -> Dict[str, float]:
        out = {k: round(v, 3) for k, v in self._stages_ms.items()}
        if include_total:
            out[TIMING_TOTAL_KEY] = round(self.total_ms(), 3)
        return out
