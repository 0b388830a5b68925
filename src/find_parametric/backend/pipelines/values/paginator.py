# src/find_parametric/backend/pipelines/values/paginator.py
"""
[职责] ParametricPaginator：单字段 parametric 值分页加载（先加载受当前查询限制且带计数的值，耗尽后加载计数为 0 的全量值）。
[边界] page_size 为每次 fetch_next 的最小新增数量；已出现的值不重复；请求失败后分页器停止（error 保留）。
[上游关系] parametric_service / 前端值列表（“更多”）。
[下游关系] FieldStatisticsEngine.query_tag_values（start/max_values 为绝对位置）。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from find_parametric.backend.pipelines.base.context import FacetContext
from find_parametric.backend.schemas.restrictions import ParametricRequest, QueryRestrictions
from find_parametric.backend.utils.constants import DEFAULT_VALUES_PAGE_SIZE


@dataclass
class PaginatedValue:
    value: str
    count: int
    selected: bool = False


@dataclass
class _PaginationState:
    next_restricted_page: int = 1
    next_page: int = 1
    total_restricted_values: Optional[int] = None
    total_values: Optional[int] = None


class ParametricPaginator:
    """
    [职责] 维护单字段的已加载值与选中集合。
    [边界] 不并发：同一时刻只允许一次 fetch_next（调用方串行 await）。
    """

    def __init__(
        self,
        ctx: FacetContext,
        *,
        field_name: str,
        restrictions: QueryRestrictions,
        page_size: int = DEFAULT_VALUES_PAGE_SIZE,
        selected_values: Iterable[str] = (),
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be > 0")
        self._ctx = ctx
        self._field_name = field_name
        self._restrictions = restrictions
        self._unrestricted = QueryRestrictions(databases=restrictions.databases)  # docstring: 仅保留索引限制
        self._page_size = page_size
        self._selected = set(selected_values)
        self._values: Dict[str, PaginatedValue] = {}
        self._state = _PaginationState()
        self.error: Optional[Exception] = None

    @property
    def values(self) -> List[PaginatedValue]:
        return list(self._values.values())

    @property
    def selected_values(self) -> List[str]:
        return sorted(self._selected)

    @property
    def exhausted(self) -> bool:
        return self._next_fetch() is None

    @property
    def empty(self) -> bool:
        return self.error is None and self.exhausted and not self._values

    def _next_fetch(self) -> Optional[Tuple[ParametricRequest, bool]]:
        """Next request and whether it is the restricted (counted) phase."""
        s = self._state
        restricted_start = 1 + self._page_size * (s.next_restricted_page - 1)
        unrestricted_start = 1 + self._page_size * (s.next_page - 1)
        if s.total_restricted_values is None or restricted_start <= s.total_restricted_values:
            return (
                ParametricRequest(
                    field_names=(self._field_name,),
                    restrictions=self._restrictions,
                    start=restricted_start,
                    max_values=self._page_size * s.next_restricted_page,
                ),
                True,
            )
        if s.total_values is None or unrestricted_start <= s.total_values:
            return (
                ParametricRequest(
                    field_names=(self._field_name,),
                    restrictions=self._unrestricted,
                    start=unrestricted_start,
                    max_values=self._page_size * s.next_page,
                ),
                False,
            )
        return None

    async def fetch_next(self) -> List[PaginatedValue]:
        """
        [职责] 加载至少 page_size 个新值（或直到耗尽），返回本次新增的值。
        [边界] 引擎错误记录到 self.error 后继续抛出；之后的调用不再请求。
        """

        if self.error is not None:
            return []

        added: List[PaginatedValue] = []
        required = self._page_size
        while required > 0:
            planned = self._next_fetch()
            if planned is None:
                break
            request, restricted = planned
            if restricted:
                self._state.next_restricted_page += 1
            else:
                self._state.next_page += 1

            try:
                with self._ctx.timing.stage("engine"):
                    tags = await self._ctx.engine.query_tag_values(request, timeout=self._ctx.timeout_s)
            except Exception as exc:
                self.error = exc
                raise

            tag = next((t for t in tags if t.field_name == self._field_name), None)
            total = tag.total_values if tag is not None else 0
            returned = tag.values if tag is not None else []
            if restricted:
                self._state.total_restricted_values = total
            else:
                self._state.total_values = total

            fresh = []
            for v in returned:
                if v.value in self._values:
                    continue
                item = PaginatedValue(
                    value=v.value,
                    count=v.count if restricted else 0,
                    selected=v.value in self._selected,
                )
                self._values[v.value] = item
                fresh.append(item)
            added.extend(fresh)

            if len(fresh) >= required:
                break
            required -= len(returned)
        return added

    def toggle_selection(self, value: str) -> bool:
        """Flip the selected flag of a loaded value; returns the new state."""
        item = self._values.get(value)
        if item is None:
            raise KeyError(value)
        item.selected = not item.selected
        if item.selected:
            self._selected.add(value)
        else:
            self._selected.discard(value)
        return item.selected
