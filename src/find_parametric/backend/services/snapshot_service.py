# src/find_parametric/backend/services/snapshot_service.py

"""
[职责] snapshot_service：保存/读取/列出/删除 saved snapshot，恢复为 FacetSyncController，并生成 "Query Restrictions" 摘要行。
[边界] restrictions 以 serialize 文本落库（往返无损）；事务在本层提交；不缓存 controller。
[上游关系] api/routers/snapshots.py 调用；测试直接调用以验证往返。
[下游关系] SnapshotRepo（持久化）、FacetSyncController.from_snapshot（恢复）、labels（摘要格式化）。
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from find_parametric.backend.db.models.snapshot import SavedSnapshotModel
from find_parametric.backend.db.repo import SnapshotRepo
from find_parametric.backend.engine.base import FieldStatisticsEngine
from find_parametric.backend.pipelines.base.context import FacetContext
from find_parametric.backend.pipelines.restriction.codec import deserialize, serialize
from find_parametric.backend.pipelines.restriction.model import chosen_ranges, chosen_values
from find_parametric.backend.pipelines.sync.controller import FacetSyncController
from find_parametric.backend.pipelines.sync.labels import (
    ParametricDisplayValues,
    format_date_value,
    format_range,
)
from find_parametric.backend.schemas.audit import TraceContext
from find_parametric.backend.schemas.parametric import FieldKind
from find_parametric.backend.schemas.restrictions import QueryRestrictions
from find_parametric.backend.schemas.snapshots import (
    SavedSnapshot,
    SnapshotRange,
    SnapshotState,
    SnapshotSummaryRow,
)
from find_parametric.backend.utils.constants import SNAPSHOT_ID_KEY
from find_parametric.backend.utils.errors import NotFoundError
from find_parametric.backend.utils.logging_ import get_logger, log_event


logger = get_logger("services.snapshot")

RELATED_CONCEPTS_TITLE = "Related Concepts"
INDEXES_TITLE = "Indexes"
MIN_DATE_TITLE = "Min Date"
MAX_DATE_TITLE = "Max Date"
VALUE_SEPARATOR = ", "


def _to_saved(row: SavedSnapshotModel) -> SavedSnapshot:
    return SavedSnapshot(
        id=row.id,
        title=row.title,
        restrictions=row.restrictions,
        parametric_values={k: list(v) for k, v in (row.parametric_values or {}).items()},
        parametric_ranges=[SnapshotRange.model_validate(r) for r in (row.parametric_ranges or [])],
        related_concepts=list(row.related_concepts or []),
        result_count=row.result_count,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def ranges_from_restrictions(restrictions: QueryRestrictions) -> List[SnapshotRange]:
    """Range terms of the field text as snapshot ranges (RANGE -> Date, NRANGE -> Numeric)."""
    return [
        SnapshotRange(
            field_name=name,
            kind=FieldKind.DATE if operator == "RANGE" else FieldKind.NUMERIC,
            min=bounds[0],
            max=bounds[1],
        )
        for name, (operator, bounds) in chosen_ranges(restrictions).items()
    ]


def state_from_restrictions(
    restrictions: QueryRestrictions,
    *,
    title: str,
    related_concepts: Sequence[str] = (),
    result_count: Optional[int] = None,
) -> SnapshotState:
    return SnapshotState(
        title=title,
        restrictions=serialize(restrictions),
        parametric_values={k: list(v) for k, v in chosen_values(restrictions).items()},
        parametric_ranges=ranges_from_restrictions(restrictions),
        related_concepts=list(related_concepts),
        result_count=result_count,
    )


async def save_snapshot(
    *,
    session: AsyncSession,
    state: SnapshotState,
    trace_context: Optional[TraceContext] = None,
) -> SavedSnapshot:
    """
    [职责] 落库快照并提交事务。
    [边界] restrictions 文本先反序列化一次（非法快照在写入前被拒绝）。
    """

    deserialize(state.restrictions)  # docstring: 校验往返可用
    repo = SnapshotRepo(session)
    try:
        row = await repo.create(
            title=state.title,
            restrictions=state.restrictions,
            parametric_values=state.parametric_values,
            parametric_ranges=[r.model_dump(mode="json") for r in state.parametric_ranges],
            related_concepts=state.related_concepts,
            result_count=state.result_count,
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    log_event(
        logger,
        logging.INFO,
        "snapshot.saved",
        context=trace_context,
        fields={SNAPSHOT_ID_KEY: row.id, "range_count": len(state.parametric_ranges)},
    )
    return _to_saved(row)


async def save_controller_snapshot(
    *,
    session: AsyncSession,
    controller: FacetSyncController,
    title: str,
    related_concepts: Sequence[str] = (),
    result_count: Optional[int] = None,
    trace_context: Optional[TraceContext] = None,
) -> SavedSnapshot:
    """Persist the current facet state of a controller."""
    state = controller.to_snapshot_state(title=title, related_concepts=related_concepts, result_count=result_count)
    return await save_snapshot(session=session, state=state, trace_context=trace_context)


async def get_snapshot(*, session: AsyncSession, snapshot_id: str) -> SavedSnapshot:
    row = await SnapshotRepo(session).get(snapshot_id)
    if row is None:
        raise NotFoundError(message="saved snapshot not found", detail={SNAPSHOT_ID_KEY: snapshot_id})
    return _to_saved(row)


async def list_snapshots(
    *,
    session: AsyncSession,
    offset: int = 0,
    limit: int = 50,
) -> Tuple[List[SavedSnapshot], int]:
    repo = SnapshotRepo(session)
    rows = await repo.list(offset=offset, limit=limit)
    return [_to_saved(r) for r in rows], await repo.count()


async def delete_snapshot(
    *,
    session: AsyncSession,
    snapshot_id: str,
    trace_context: Optional[TraceContext] = None,
) -> None:
    repo = SnapshotRepo(session)
    try:
        deleted = await repo.delete(snapshot_id)
        if not deleted:
            raise NotFoundError(message="saved snapshot not found", detail={SNAPSHOT_ID_KEY: snapshot_id})
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    log_event(logger, logging.INFO, "snapshot.deleted", context=trace_context, fields={SNAPSHOT_ID_KEY: snapshot_id})


async def restore_snapshot(
    *,
    session: AsyncSession,
    snapshot_id: str,
    engine: FieldStatisticsEngine,
    trace_context: Optional[TraceContext] = None,
    fields: Optional[Mapping[str, FieldKind]] = None,
    display_values: Optional[ParametricDisplayValues] = None,
) -> Tuple[SavedSnapshot, FacetSyncController]:
    """
    [职责] 读取快照并重建 FacetSyncController（restrictions 与 labels 与保存时一致）。
    [边界] 重建会触发一次桶计算；引擎错误原样抛出（携带 last_good）。
    """

    snapshot = await get_snapshot(session=session, snapshot_id=snapshot_id)
    ctx = FacetContext.for_request(
        engine,
        trace_id=str(trace_context.trace_id) if trace_context else None,
        request_id=str(trace_context.request_id) if trace_context else None,
    )
    controller = await FacetSyncController.from_snapshot(
        ctx,
        snapshot,
        fields=fields,
        display_values=display_values,
    )
    log_event(
        logger,
        logging.INFO,
        "snapshot.restored",
        context=ctx,
        fields={SNAPSHOT_ID_KEY: snapshot_id, "label_count": len(controller.labels)},
    )
    return snapshot, controller


def _date_row(title: str, value) -> Optional[SnapshotSummaryRow]:
    if value is None:
        return None
    return SnapshotSummaryRow(title=title, content=format_date_value(value.timestamp()))


def snapshot_summary(
    snapshot: SnapshotState,
    *,
    display_values: Optional[ParametricDisplayValues] = None,
) -> List[SnapshotSummaryRow]:
    """
    [职责] "Query Restrictions" 面板行：related concepts、indexes、min/max date、每个值字段一行、每个区间一行。
    [边界] 空的 related concepts 与缺失的日期不产生行；indexes 行总是存在。
    """

    display = display_values or ParametricDisplayValues()
    restrictions = deserialize(snapshot.restrictions)

    head: Iterable[Optional[SnapshotSummaryRow]] = (
        SnapshotSummaryRow(title=RELATED_CONCEPTS_TITLE, content=VALUE_SEPARATOR.join(snapshot.related_concepts))
        if snapshot.related_concepts
        else None,
        SnapshotSummaryRow(title=INDEXES_TITLE, content=VALUE_SEPARATOR.join(restrictions.databases)),
        _date_row(MIN_DATE_TITLE, restrictions.min_date),
        _date_row(MAX_DATE_TITLE, restrictions.max_date),
    )
    rows = [r for r in head if r is not None]

    for field_name, values in snapshot.parametric_values.items():
        rows.append(
            SnapshotSummaryRow(
                title=display.field_display_name(field_name),
                content=VALUE_SEPARATOR.join(display.value_display(field_name, v) for v in values),
            )
        )
    for r in snapshot.parametric_ranges:
        rows.append(
            SnapshotSummaryRow(
                title=display.field_display_name(r.field_name),
                content=format_range((r.min, r.max), r.kind),
            )
        )
    return rows
