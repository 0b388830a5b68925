# src/find_parametric/backend/engine/base.py
"""
[职责] 外部搜索引擎协作者接口：字段统计、tag 值计数、结果文档分页、健康检查；统一超时语义。
[边界] 引擎正确性不在本层保证（视为权威）；每个调用都带调用方给定的 timeout，超时抛 EngineTimeoutError，绝不返回空结果代替。
[上游关系] bucketing/values/export pipelines 与 services 调用。
[下游关系] InMemoryEngine / HttpEngineClient 实现 _query_* 钩子。
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, List, Optional, Sequence, Tuple, TypeVar

from find_parametric.backend.schemas.export import ResultDocument
from find_parametric.backend.schemas.parametric import FieldKind, TagValues
from find_parametric.backend.schemas.restrictions import ParametricRequest, QueryRestrictions
from find_parametric.backend.utils.errors import BadRequestError, EngineTimeoutError


T = TypeVar("T")


@dataclass(frozen=True)
class FieldStatistics:
    """
    [职责] 单字段的原始取值统计：每个含该字段的匹配文档贡献一个值。
    [边界] 不含该字段的文档被排除（不计入 values），但计入 total_matching。
    """

    field_name: str
    kind: FieldKind
    values: Tuple[float, ...]  # docstring: 数值；日期为 epoch 秒
    total_matching: int

    @property
    def observed_range(self) -> Optional[Tuple[float, float]]:
        if not self.values:
            return None
        return min(self.values), max(self.values)


async def call_with_timeout(awaitable: Awaitable[T], *, timeout: float, operation: str) -> T:
    """
    [职责] 以 asyncio.wait_for 包裹引擎调用；超时映射为可重试的 EngineTimeoutError。
    [边界] timeout 必须 > 0；不吞掉其他异常。
    """

    if timeout is None or timeout <= 0:
        close = getattr(awaitable, "close", None)
        if close is not None:
            close()  # docstring: 未调度的协程直接关闭
        raise BadRequestError(message="engine timeout must be positive", detail={"timeout": timeout})
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise EngineTimeoutError(
            message=f"engine {operation} exceeded {timeout}s",
            detail={"operation": operation, "timeout_s": timeout},
            cause=exc,
        ) from exc


class FieldStatisticsEngine(ABC):
    """
    [职责] 引擎协作者抽象：公开方法负责超时包裹，子类实现 _query_* 钩子。
    [边界] 不缓存；无共享可变状态，可按字段并发调用。
    """

    async def query_field_statistics(
        self,
        restrictions: QueryRestrictions,
        field_name: str,
        *,
        timeout: float,
    ) -> FieldStatistics:
        return await call_with_timeout(
            self._query_field_statistics(restrictions, field_name),
            timeout=timeout,
            operation="field_statistics",
        )

    async def query_tag_values(self, request: ParametricRequest, *, timeout: float) -> List[TagValues]:
        return await call_with_timeout(
            self._query_tag_values(request),
            timeout=timeout,
            operation="tag_values",
        )

    async def query_documents(
        self,
        restrictions: QueryRestrictions,
        *,
        start: int,
        max_results: int,
        fields: Sequence[str] = (),
        timeout: float,
    ) -> List[ResultDocument]:
        """Documents in result order, positions [start, start + max_results) (0-based)."""
        return await call_with_timeout(
            self._query_documents(restrictions, start=start, max_results=max_results, fields=fields),
            timeout=timeout,
            operation="documents",
        )

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None

    @abstractmethod
    async def _query_field_statistics(self, restrictions: QueryRestrictions, field_name: str) -> FieldStatistics:
        raise NotImplementedError

    @abstractmethod
    async def _query_tag_values(self, request: ParametricRequest) -> List[TagValues]:
        raise NotImplementedError

    @abstractmethod
    async def _query_documents(
        self,
        restrictions: QueryRestrictions,
        *,
        start: int,
        max_results: int,
        fields: Sequence[str],
    ) -> List[ResultDocument]:
        raise NotImplementedError
