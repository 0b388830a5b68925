# src/find_parametric/backend/pipelines/values/dependent.py
"""
[职责] DependentValuesResolver：按 fieldNames 顺序递归解析字段值树（字段 N 的候选值受字段 N-1 选定值约束）。
[边界] 深度 = len(fieldNames)（受 max_depth 限制）；已在 restrictions 中被选中的值/已加入查询的 concept
      不作为该字段自身的候选值；memo 以 (fieldNames[i:], restrictions) 为 key（restrictions 不可变）。
[上游关系] parametric_service.get_dependent_values。
[下游关系] FieldStatisticsEngine.query_tag_values（每个子树独立，可并发）。
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence, Set, Tuple

from find_parametric.backend.pipelines.base.context import FacetContext
from find_parametric.backend.pipelines.restriction.fieldtext import selected_values
from find_parametric.backend.pipelines.restriction.model import field_terms, query_concepts, restrict_to_value
from find_parametric.backend.pipelines.sync.labels import ParametricDisplayValues
from find_parametric.backend.schemas.parametric import DependentFieldNode, DependentValue
from find_parametric.backend.schemas.restrictions import ParametricRequest, QueryRestrictions, SortParam
from find_parametric.backend.utils.errors import BadRequestError
from find_parametric.config import settings


MemoKey = Tuple[Tuple[str, ...], QueryRestrictions]


def excluded_values(restrictions: QueryRestrictions, field_name: str) -> Set[str]:
    """Lower-cased values that must not be offered as refinements of field_name."""
    chosen = selected_values(field_terms(restrictions), field_name)
    return {v.lower() for v in chosen} | {c.lower() for c in query_concepts(restrictions)}


class DependentValuesResolver:
    """
    [职责] 递归解析 dependent values；同一 resolver 实例内对相同 (fields, restrictions) 只请求一次引擎。
    [边界] 不跨请求缓存（每次请求新建实例）。
    """

    def __init__(
        self,
        ctx: FacetContext,
        *,
        max_values: Optional[int] = None,
        sort: SortParam = SortParam.DOCUMENT_COUNT,
        max_depth: Optional[int] = None,
        display_values: Optional[ParametricDisplayValues] = None,
    ) -> None:
        self._ctx = ctx
        self._max_values = max_values
        self._sort = sort
        self._max_depth = max_depth if max_depth is not None else settings.FIND_PARAMETRIC_DEPENDENT_MAX_DEPTH
        self._display = display_values or ParametricDisplayValues()
        self._memo: Dict[MemoKey, "asyncio.Future[DependentFieldNode]"] = {}

    @property
    def engine_calls(self) -> int:
        """Distinct (fields, restrictions) keys resolved so far."""
        return len(self._memo)

    async def resolve(self, field_names: Sequence[str], restrictions: QueryRestrictions) -> List[DependentFieldNode]:
        names = tuple(field_names)
        if not names:
            return []
        if len(set(names)) != len(names):
            raise BadRequestError(message="fieldNames must be unique", detail={"field_names": list(names)})
        if len(names) > self._max_depth:
            raise BadRequestError(
                message="too many dependent fields",
                detail={"depth": len(names), "max_depth": self._max_depth},
            )
        return [await self._resolve(names, restrictions)]

    async def _resolve(self, names: Tuple[str, ...], restrictions: QueryRestrictions) -> DependentFieldNode:
        key: MemoKey = (names, restrictions)
        existing = self._memo.get(key)
        if existing is not None:
            return await existing  # docstring: memo 命中（含进行中的相同计算）

        future: "asyncio.Future[DependentFieldNode]" = asyncio.get_running_loop().create_future()
        self._memo[key] = future
        try:
            node = await self._compute(names, restrictions)
        except asyncio.CancelledError:
            del self._memo[key]
            future.cancel()
            raise
        except Exception as exc:
            del self._memo[key]
            future.set_exception(exc)
            future.exception()  # docstring: 标记已读取，避免无人等待时的告警
            raise
        future.set_result(node)
        return node

    async def _compute(self, names: Tuple[str, ...], restrictions: QueryRestrictions) -> DependentFieldNode:
        field_name = names[0]
        excluded = excluded_values(restrictions, field_name)
        max_values = self._max_values + len(excluded) if self._max_values is not None else None
        request = ParametricRequest(
            field_names=(field_name,),
            restrictions=restrictions,
            max_values=max_values,
            sort=self._sort,
        )
        with self._ctx.timing.stage("engine"):
            tags = await self._ctx.engine.query_tag_values(request, timeout=self._ctx.timeout_s)

        candidates = []
        for tag in tags:
            if tag.field_name != field_name:
                continue
            candidates.extend(v for v in tag.values if v.value.lower() not in excluded)
        if self._max_values is not None:
            candidates = candidates[: self._max_values]

        children: List[Optional[DependentFieldNode]] = [None] * len(candidates)
        if len(names) > 1:
            children = list(
                await asyncio.gather(
                    *(self._resolve(names[1:], restrict_to_value(restrictions, field_name, v.value)) for v in candidates)
                )
            )

        return DependentFieldNode(
            field_name=field_name,
            values=[
                DependentValue(
                    value=v.value,
                    display_value=self._display.value_display(field_name, v.value, v.display_value),
                    count=v.count,
                    children=[child] if child is not None else [],
                )
                for v, child in zip(candidates, children)
            ],
        )
