# src/find_parametric/backend/api/routers/snapshots.py

"""
[职责] Saved Snapshot Router：创建、读取（可选恢复 facet 状态）、列出与删除快照。
[边界] 不直接访问 repo；事务由 snapshot_service 控制。
[上游关系] 前端 saved search / snapshot 面板。
[下游关系] snapshot_service。
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from find_parametric.backend.api.deps import get_display_values, get_engine, get_session, get_trace_context
from find_parametric.backend.api.errors import to_json_response
from find_parametric.backend.api.schemas_http.snapshots import (
    SnapshotCreateRequest,
    SnapshotListResponse,
    SnapshotView,
)
from find_parametric.backend.engine.base import FieldStatisticsEngine
from find_parametric.backend.pipelines.sync.labels import ParametricDisplayValues
from find_parametric.backend.schemas.audit import TraceContext
from find_parametric.backend.schemas.snapshots import SavedSnapshot
from find_parametric.backend.services.snapshot_service import (
    delete_snapshot,
    get_snapshot,
    list_snapshots,
    restore_snapshot,
    save_snapshot,
    snapshot_summary,
    state_from_restrictions,
)
from find_parametric.backend.utils.constants import SAVED_SNAPSHOT_PATH


router = APIRouter(prefix=SAVED_SNAPSHOT_PATH, tags=["snapshots"])


def _to_view(
    snapshot: SavedSnapshot,
    display_values: ParametricDisplayValues,
    labels: Optional[List[str]] = None,
) -> SnapshotView:
    return SnapshotView(
        **snapshot.model_dump(),
        summary=snapshot_summary(snapshot, display_values=display_values),
        labels=labels,
    )


@router.post("", response_model=SnapshotView, status_code=201)
async def create_snapshot(
    body: SnapshotCreateRequest,
    session: AsyncSession = Depends(get_session),
    display_values: ParametricDisplayValues = Depends(get_display_values),
    trace_context: TraceContext = Depends(get_trace_context),
) -> SnapshotView:
    try:
        state = state_from_restrictions(
            body.restrictions,
            title=body.title,
            related_concepts=body.related_concepts,
            result_count=body.result_count,
        )
        saved = await save_snapshot(session=session, state=state, trace_context=trace_context)
    except Exception as exc:
        return to_json_response(  # type: ignore[return-value]
            exc,
            trace_id=str(trace_context.trace_id),
            request_id=str(trace_context.request_id),
        )
    return _to_view(saved, display_values)


@router.get("", response_model=SnapshotListResponse)
async def list_saved_snapshots(
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    display_values: ParametricDisplayValues = Depends(get_display_values),
    trace_context: TraceContext = Depends(get_trace_context),
) -> SnapshotListResponse:
    try:
        items, total = await list_snapshots(session=session, offset=offset, limit=limit)
        views = [_to_view(s, display_values) for s in items]
    except Exception as exc:
        return to_json_response(  # type: ignore[return-value]
            exc,
            trace_id=str(trace_context.trace_id),
            request_id=str(trace_context.request_id),
        )
    return SnapshotListResponse(items=views, total=total)


@router.get("/{snapshot_id}", response_model=SnapshotView)
async def read_snapshot(
    snapshot_id: str,
    restore: bool = Query(False),
    session: AsyncSession = Depends(get_session),
    engine: FieldStatisticsEngine = Depends(get_engine),
    display_values: ParametricDisplayValues = Depends(get_display_values),
    trace_context: TraceContext = Depends(get_trace_context),
) -> SnapshotView:
    """
    [职责] 读取快照；restore=true 时重建 facet 状态并返回恢复后的 filter labels。
    [边界] 恢复会请求引擎（桶计算）。
    """
    try:
        if restore:
            snapshot, controller = await restore_snapshot(
                session=session,
                snapshot_id=snapshot_id,
                engine=engine,
                trace_context=trace_context,
                display_values=display_values,
            )
            return _to_view(snapshot, display_values, labels=[label.text for label in controller.labels])
        snapshot = await get_snapshot(session=session, snapshot_id=snapshot_id)
    except Exception as exc:
        return to_json_response(  # type: ignore[return-value]
            exc,
            trace_id=str(trace_context.trace_id),
            request_id=str(trace_context.request_id),
        )
    return _to_view(snapshot, display_values)


@router.delete("/{snapshot_id}", status_code=204)
async def remove_snapshot(
    snapshot_id: str,
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Response:
    try:
        await delete_snapshot(session=session, snapshot_id=snapshot_id, trace_context=trace_context)
    except Exception as exc:
        return to_json_response(
            exc,
            trace_id=str(trace_context.trace_id),
            request_id=str(trace_context.request_id),
        )
    return Response(status_code=204)
