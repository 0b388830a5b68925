# src/find_parametric/backend/pipelines/sync/generation.py
"""
[职责] restriction generation 计数器：每次 restriction 变化递增；迟到的旧 generation 结果被丢弃（按 generation 而非到达顺序）。
[边界] 丢弃不是错误：以 StaleResult 表达；单事件循环内使用。
[上游关系] FacetSyncController 在提交 restriction 变化时 advance，在合并结果前 accept。
[下游关系] services 日志（generation 字段）。
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StaleResult:
    """Outcome of a computation whose generation was superseded before it returned."""

    generation: int
    current: int


class GenerationGate:
    def __init__(self) -> None:
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    def advance(self) -> int:
        self._current += 1
        return self._current

    def accept(self, generation: int) -> bool:
        """True only for the latest generation (last writer by generation wins)."""
        return generation == self._current

    def stale(self, generation: int) -> StaleResult:
        return StaleResult(generation=generation, current=self._current)
