# playground/sql_gate/test_snapshot_repo_gate.py

"""
[职责] snapshot gate：SnapshotRepo CRUD 与 snapshot_service 保存/列表/恢复/摘要行。
[边界] 使用临时 sqlite session 与种子 InMemoryEngine；不经过 HTTP。
[上游关系] backend/db/repo/snapshot_repo.py、backend/services/snapshot_service.py。
[下游关系] saved-snapshot 路由依赖这些行为。
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from find_parametric.backend.db.repo import SnapshotRepo
from find_parametric.backend.engine.memory import InMemoryEngine
from find_parametric.backend.pipelines.base.context import FacetContext
from find_parametric.backend.pipelines.restriction.codec import deserialize
from find_parametric.backend.pipelines.sync.controller import FacetSyncController
from find_parametric.backend.pipelines.sync.labels import ParametricDisplayValues
from find_parametric.backend.schemas.parametric import FieldKind
from find_parametric.backend.schemas.restrictions import QueryRestrictions
from find_parametric.backend.services.snapshot_service import (
    delete_snapshot,
    get_snapshot,
    list_snapshots,
    restore_snapshot,
    save_controller_snapshot,
    save_snapshot,
    snapshot_summary,
    state_from_restrictions,
)
from find_parametric.backend.utils.errors import InvalidRestrictionError, NotFoundError


pytestmark = pytest.mark.sql_gate


# -----------------------------
# repo
# -----------------------------


@pytest.mark.asyncio
async def test_snapshot_repo_crud(session: AsyncSession) -> None:
    repo = SnapshotRepo(session)

    row = await repo.create(title="first", restrictions="{}", parametric_values={"COLOUR": ["red"]})
    assert row.id
    assert row.created_at is not None
    assert row.parametric_ranges == []

    fetched = await repo.get(row.id)
    assert fetched is not None
    assert fetched.parametric_values == {"COLOUR": ["red"]}

    await repo.create(title="second", restrictions="{}")
    assert await repo.count() == 2
    assert {r.title for r in await repo.list()} == {"first", "second"}
    assert len(await repo.list(offset=1, limit=10)) == 1

    assert await repo.delete(row.id) is True
    assert await repo.delete(row.id) is False
    assert await repo.get(row.id) is None
    assert await repo.count() == 1


# -----------------------------
# service
# -----------------------------


def test_state_from_restrictions_extracts_values_and_ranges() -> None:
    r = QueryRestrictions(
        databases=["books"],
        field_text="MATCH{news,tech}:CATEGORY AND NRANGE{0,500}:PRICE",
    )
    state = state_from_restrictions(r, title="saved", related_concepts=["market"], result_count=3)

    assert state.parametric_values == {"CATEGORY": ["news", "tech"]}
    assert [(x.field_name, x.kind, x.min, x.max) for x in state.parametric_ranges] == [
        ("PRICE", FieldKind.NUMERIC, 0.0, 500.0)
    ]
    assert deserialize(state.restrictions) == r


@pytest.mark.asyncio
async def test_save_list_get_delete(session: AsyncSession) -> None:
    state = state_from_restrictions(QueryRestrictions(databases=["films"]), title="films")
    saved = await save_snapshot(session=session, state=state)

    items, total = await list_snapshots(session=session)
    assert total == 1
    assert [s.id for s in items] == [saved.id]

    fetched = await get_snapshot(session=session, snapshot_id=saved.id)
    assert fetched.restrictions == state.restrictions
    assert fetched.title == "films"

    await delete_snapshot(session=session, snapshot_id=saved.id)
    with pytest.raises(NotFoundError):
        await get_snapshot(session=session, snapshot_id=saved.id)
    with pytest.raises(NotFoundError):
        await delete_snapshot(session=session, snapshot_id=saved.id)


@pytest.mark.asyncio
async def test_save_rejects_unreadable_restrictions(session: AsyncSession) -> None:
    state = state_from_restrictions(QueryRestrictions(), title="bad").model_copy(update={"restrictions": "not json"})
    with pytest.raises(InvalidRestrictionError):
        await save_snapshot(session=session, state=state)

    _, total = await list_snapshots(session=session)
    assert total == 0


@pytest.mark.asyncio
async def test_restore_reproduces_controller_state(
    session: AsyncSession, engine: InMemoryEngine, ctx: FacetContext
) -> None:
    """Saved controller -> restore -> same restrictions and labels."""  # docstring: 往返一致
    fields = {"PRICE": FieldKind.NUMERIC, "SIZE": FieldKind.NUMERIC}
    controller = FacetSyncController(ctx, target_bucket_count=5)
    await controller.search(QueryRestrictions(databases=["books", "films"]), fields)
    await controller.select_range("PRICE", (0, 500))

    saved = await save_controller_snapshot(session=session, controller=controller, title="cheap", result_count=5)
    restored_snapshot, restored = await restore_snapshot(
        session=session,
        snapshot_id=saved.id,
        engine=engine,
        fields=fields,
    )

    assert restored_snapshot.id == saved.id
    assert restored.restrictions == controller.restrictions
    assert [label.text for label in restored.labels] == [label.text for label in controller.labels]


@pytest.mark.asyncio
async def test_restore_missing_snapshot(session: AsyncSession, engine: InMemoryEngine) -> None:
    with pytest.raises(NotFoundError):
        await restore_snapshot(session=session, snapshot_id="missing", engine=engine)


def test_snapshot_summary_rows() -> None:
    r = QueryRestrictions(
        databases=["books", "films"],
        field_text="MATCH{red,blue}:COLOUR AND RANGE{1580515200,1588291200}:PUBLISHED",
        max_date=datetime(2021, 3, 4, 5, 6, tzinfo=timezone.utc),
    )
    state = state_from_restrictions(r, title="summary")
    display = ParametricDisplayValues.from_config(
        [{"name": "COLOUR", "displayName": "Colour Of Item", "values": [{"name": "red", "displayName": "Red"}]}]
    )

    rows = [(row.title, row.content) for row in snapshot_summary(state, display_values=display)]
    assert rows == [
        ("Indexes", "books, films"),
        ("Max Date", "2021/03/04 05:06"),
        ("Colour Of Item", "Red, blue"),
        ("Published", "2020/02/01 00:00 – 2020/05/01 00:00"),
    ]
