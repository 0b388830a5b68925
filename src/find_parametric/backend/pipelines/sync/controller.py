# src/find_parametric/backend/pipelines/sync/controller.py
"""
[职责] FacetSyncController：以一个规范 QueryRestrictions 为唯一真相，协调数值/日期 widget（侧栏小图 + 单个主图）、
      min/max 文本输入、filter label 与快照之间的状态一致性。
[边界] 每次交互产生新的 QueryRestrictions（事件溯源，不原地修改）；校验失败丢弃交互并保留原状态；
      每个字段的直方图在“排除自身区间”的 restrictions 下计算；旧 generation 的结果到达即丢弃；
      引擎失败时保留 last-known-good 桶/标签并以带 last_good 的 EngineError 抛出。
[上游关系] services/snapshot_service（恢复快照）、前端交互事件。
[下游关系] BucketingEngine（compute_range_info）、RestrictionModel、labels。
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from find_parametric.backend.pipelines.base.context import FacetContext
from find_parametric.backend.pipelines.bucketing.engine import compute_range_info
from find_parametric.backend.pipelines.bucketing.geometry import (
    EditedBound,
    Range,
    drag_to_range,
    range_to_pixels,
    snap_range,
)
from find_parametric.backend.pipelines.restriction.codec import deserialize, serialize, to_payload
from find_parametric.backend.pipelines.restriction.model import (
    chosen_ranges,
    chosen_values,
    exclude_field_range,
    with_range,
)
from find_parametric.backend.schemas.facets import FilterLabel, Selection
from find_parametric.backend.schemas.parametric import BucketingParams, FieldKind, RangeInfo
from find_parametric.backend.schemas.restrictions import QueryRestrictions
from find_parametric.backend.schemas.snapshots import SnapshotRange, SnapshotState
from find_parametric.backend.utils.errors import EngineError, InvalidRestrictionError, NotFoundError
from find_parametric.backend.utils.logging_ import get_logger, log_event
from find_parametric.config import settings

from .generation import GenerationGate, StaleResult
from .labels import ParametricDisplayValues, range_label


logger = get_logger("pipelines.sync")

RefreshOutcome = Union[int, StaleResult]  # docstring: 已应用的 generation 或被丢弃的旧结果


class FacetSyncController:
    """
    [职责] 持有 Selection（按字段身份索引）、当前 restrictions 与 generation gate。
    [边界] 至多一个 Selection expanded；label 集合与 active Selection 一一对应（按字段顺序）。
    """

    def __init__(
        self,
        ctx: FacetContext,
        *,
        target_bucket_count: Optional[int] = None,
        display_values: Optional[ParametricDisplayValues] = None,
    ) -> None:
        self._ctx = ctx
        self._target = int(target_bucket_count or settings.FIND_PARAMETRIC_DEFAULT_BUCKETS)
        self._display = display_values or ParametricDisplayValues()
        self._gate = GenerationGate()
        self._restrictions = QueryRestrictions()
        self._selections: Dict[str, Selection] = {}

    # --- read-only projections ---

    @property
    def restrictions(self) -> QueryRestrictions:
        return self._restrictions

    @property
    def generation(self) -> int:
        return self._gate.current

    @property
    def selections(self) -> List[Selection]:
        return list(self._selections.values())

    @property
    def expanded(self) -> Optional[Selection]:
        return next((s for s in self._selections.values() if s.expanded), None)

    @property
    def labels(self) -> List[FilterLabel]:
        return [
            FilterLabel(field_name=s.field_name, widget_id=s.widget_id, text=s.label or "")
            for s in self._selections.values()
            if s.is_active
        ]

    def selection(self, widget_id: str) -> Selection:
        for s in self._selections.values():
            if s.widget_id == widget_id:
                return s
        raise NotFoundError(message="unknown facet widget", detail={"widget_id": widget_id})

    def selection_rectangle(self, widget_id: str, chart_width: float) -> Optional[Tuple[int, int]]:
        """(x, width) in pixels of the active range over the widget's bounds; None when inactive."""
        s = self.selection(widget_id)
        if s.active_range is None or s.bounds is None:
            return None
        return range_to_pixels(s.active_range, s.bounds, chart_width)

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe last-known-good state (restrictions, selections, labels)."""
        return {
            "generation": self._gate.current,
            "restrictions": to_payload(self._restrictions),
            "selections": [s.to_state() for s in self._selections.values()],
            "labels": [label.text for label in self.labels],
        }

    # --- search / widget lifecycle ---

    async def search(
        self,
        restrictions: QueryRestrictions,
        fields: Mapping[str, FieldKind],
    ) -> RefreshOutcome:
        """
        [职责] 运行（或重新运行）搜索：保留字段仍存在的 Selection（按字段身份），丢弃其余，重算桶数据。
        [边界] restrictions 中已有的区间 term 被视为对应字段的 active 选择。
        """

        incoming = {k: v for k, v in chosen_ranges(restrictions).items() if k in fields}

        selections: Dict[str, Selection] = {}
        for field_name, kind in fields.items():
            kind = FieldKind(kind)
            previous = self._selections.get(field_name)
            same_kind = previous is not None and previous.kind == kind  # docstring: 类型变化时桶数据作废并重算
            active: Optional[Range] = None
            if field_name in incoming:
                active = incoming[field_name][1]
            elif same_kind:
                active = previous.active_range
            selections[field_name] = Selection(
                widget_id=previous.widget_id if previous else field_name,
                field_name=field_name,
                kind=kind,
                bounds=previous.bounds if same_kind else None,
                active_range=active,
                label=self._label_for(field_name, kind, active),
                expanded=previous.expanded if previous else False,
                buckets=previous.buckets if same_kind else (),
                generation=previous.generation if previous else 0,
                computed_for=previous.computed_for if same_kind else None,
            )

        composed = restrictions
        for s in selections.values():
            if s.active_range is not None and s.field_name not in incoming:
                composed = with_range(composed, s.field_name, s.active_range, is_date=s.kind == FieldKind.DATE)

        self._selections = selections
        return await self._commit(composed)

    def open_widget(self, widget_id: str) -> Selection:
        """Collapsed -> Expanded; any other expanded widget collapses."""
        target = self.selection(widget_id)
        for name, s in list(self._selections.items()):
            want = s.widget_id == target.widget_id
            if s.expanded != want:
                self._selections[name] = s.model_copy(update={"expanded": want})
        return self._selections[target.field_name]

    def close_widget(self, widget_id: str) -> Selection:
        s = self.selection(widget_id)
        if s.expanded:
            s = s.model_copy(update={"expanded": False})
            self._selections[s.field_name] = s
        return s

    # --- range selection ---

    async def select_range(
        self,
        widget_id: str,
        selection: Range,
        *,
        edited: Optional[EditedBound] = "max",
    ) -> RefreshOutcome:
        """
        [职责] 设置字段区间：min > max 时回弹（保留 edited 边界），校验区间落在字段 bounds 内，
              更新 restrictions 与 label，并刷新其他字段的桶数据。
        [边界] 校验失败抛 InvalidRestrictionError，状态不变。
        """

        current = self.selection(widget_id)
        if not all(math.isfinite(float(v)) for v in selection):
            raise InvalidRestrictionError(
                message="selected range bound is not finite",
                detail={"widget_id": widget_id, "range": [str(v) for v in selection]},
            )
        lo, hi = snap_range(selection, edited=edited)
        if current.bounds is not None and (lo < current.bounds[0] or hi > current.bounds[1]):
            raise InvalidRestrictionError(
                message="selected range outside field bounds",
                detail={"widget_id": widget_id, "min": lo, "max": hi, "bounds": list(current.bounds)},
            )

        composed = with_range(
            self._restrictions,
            current.field_name,
            (lo, hi),
            is_date=current.kind == FieldKind.DATE,
        )
        self._selections[current.field_name] = current.model_copy(
            update={"active_range": (lo, hi), "label": self._label_for(current.field_name, current.kind, (lo, hi))}
        )
        return await self._commit(composed)

    async def set_bound_text(self, widget_id: str, bound: EditedBound, value: float) -> RefreshOutcome:
        """Text entry into the min or max input of a widget."""
        current = self.selection(widget_id)
        shown = current.display_range
        if shown is None:
            raise InvalidRestrictionError(
                message="widget has no range to edit yet",
                detail={"widget_id": widget_id},
            )
        lo, hi = shown
        if bound == "min":
            lo = float(value)
        else:
            hi = float(value)
        return await self.select_range(widget_id, (lo, hi), edited=bound)

    async def drag_select(
        self,
        widget_id: str,
        start_px: float,
        delta_px: float,
        chart_width: float,
    ) -> RefreshOutcome:
        """Click-and-drag on the chart: pixel span -> clamped value range."""
        current = self.selection(widget_id)
        if current.bounds is None:
            raise InvalidRestrictionError(message="widget has no data to select", detail={"widget_id": widget_id})
        return await self.select_range(widget_id, drag_to_range(start_px, delta_px, current.bounds, chart_width))

    async def clear_selection(self, widget_id: str) -> RefreshOutcome:
        """
        [职责] 移除字段的区间贡献与其 label；字段自身 min/max 回到选择前的值。
        [边界] 自身桶数据不重算（其视图不含自身区间，未发生变化）。
        """

        current = self.selection(widget_id)
        if not current.is_active:
            return self._gate.current
        composed = with_range(self._restrictions, current.field_name, None)
        self._selections[current.field_name] = current.model_copy(update={"active_range": None, "label": None})
        return await self._commit(composed)

    async def remove_label(self, label: Union[FilterLabel, str]) -> RefreshOutcome:
        """Remove a filter label chip (equivalent to clearing its field's selection)."""
        text = label.text if isinstance(label, FilterLabel) else str(label)
        for s in self._selections.values():
            if s.is_active and (s.label == text or (isinstance(label, FilterLabel) and s.field_name == label.field_name)):
                return await self.clear_selection(s.widget_id)
        raise NotFoundError(message="unknown filter label", detail={"label": text})

    # --- refresh ---

    async def refresh(self) -> RefreshOutcome:
        """Recompute bucket data for every widget whose restriction view changed."""
        self._gate.advance()
        return await self._dispatch(self._gate.current)

    async def _commit(self, composed: QueryRestrictions) -> RefreshOutcome:
        self._restrictions = composed
        generation = self._gate.advance()
        return await self._dispatch(generation)

    async def _dispatch(self, generation: int) -> RefreshOutcome:
        restrictions = self._restrictions
        jobs: List[Tuple[str, str, QueryRestrictions]] = []
        for s in self._selections.values():
            view = exclude_field_range(restrictions, s.field_name)
            view_key = serialize(view)
            if s.computed_for != view_key:
                jobs.append((s.field_name, view_key, view))

        if not jobs:
            return generation

        params = BucketingParams(target_bucket_count=self._target)
        results = await asyncio.gather(
            *(compute_range_info(self._ctx, name, params, view) for name, _, view in jobs),
            return_exceptions=True,
        )

        if not self._gate.accept(generation):
            log_event(
                logger,
                logging.DEBUG,
                "facet.refresh.stale",
                context=self._ctx,
                fields={"generation": generation, "current_generation": self._gate.current},
            )
            return self._gate.stale(generation)

        for result in results:
            if isinstance(result, EngineError):
                raise result.with_last_good(self.snapshot())  # docstring: 不应用任何部分结果
            if isinstance(result, BaseException):
                raise result

        for (name, view_key, _), info in zip(jobs, results):
            self._apply(name, view_key, info, generation)
        return generation

    def _apply(self, field_name: str, view_key: str, info: RangeInfo, generation: int) -> None:
        s = self._selections.get(field_name)
        if s is None:
            return
        bounds = (info.min, info.max) if info.min is not None and info.max is not None else None
        self._selections[field_name] = s.model_copy(
            update={
                "bounds": bounds,
                "buckets": tuple(info.values),
                "generation": generation,
                "computed_for": view_key,
            }
        )

    def _label_for(self, field_name: str, kind: FieldKind, active: Optional[Range]) -> Optional[str]:
        if active is None:
            return None
        return range_label(self._display.field_display_name(field_name), active, kind)

    # --- snapshots ---

    def to_snapshot_state(
        self,
        *,
        title: str,
        related_concepts: Sequence[str] = (),
        result_count: Optional[int] = None,
    ) -> SnapshotState:
        return SnapshotState(
            title=title,
            restrictions=serialize(self._restrictions),
            parametric_values={k: list(v) for k, v in chosen_values(self._restrictions).items()},
            parametric_ranges=[
                SnapshotRange(field_name=s.field_name, kind=s.kind, min=s.active_range[0], max=s.active_range[1])
                for s in self._selections.values()
                if s.active_range is not None
            ],
            related_concepts=list(related_concepts),
            result_count=result_count,
        )

    @classmethod
    async def from_snapshot(
        cls,
        ctx: FacetContext,
        state: SnapshotState,
        *,
        fields: Optional[Mapping[str, FieldKind]] = None,
        target_bucket_count: Optional[int] = None,
        display_values: Optional[ParametricDisplayValues] = None,
    ) -> "FacetSyncController":
        """Rebuild a controller whose restrictions and labels equal those at save time."""
        restrictions = deserialize(state.restrictions)
        field_kinds: Dict[str, FieldKind] = dict(fields or {})
        for r in state.parametric_ranges:
            field_kinds.setdefault(r.field_name, r.kind)
        controller = cls(ctx, target_bucket_count=target_bucket_count, display_values=display_values)
        await controller.search(restrictions, field_kinds)
        return controller
