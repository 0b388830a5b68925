# src/find_parametric/backend/db/repo/snapshot_repo.py

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.snapshot import SavedSnapshotModel


class SnapshotRepo:
    """SavedSnapshot repository (flush only; the service commits)."""

    def __init__(self, session: AsyncSession):
        self._session = session  # docstring: DB 会话（由 deps 注入）

    async def create(
        self,
        *,
        title: str,
        restrictions: str,
        parametric_values: Optional[Dict[str, List[str]]] = None,
        parametric_ranges: Optional[Sequence[Dict[str, Any]]] = None,
        related_concepts: Optional[Sequence[str]] = None,
        result_count: Optional[int] = None,
    ) -> SavedSnapshotModel:
        """Insert a snapshot row."""
        row = SavedSnapshotModel(
            title=title,
            restrictions=restrictions,
            parametric_values=dict(parametric_values or {}),
            parametric_ranges=list(parametric_ranges or []),
            related_concepts=list(related_concepts or []),
            result_count=result_count,
        )
        self._session.add(row)
        await self._session.flush()
        await self._session.refresh(row)  # docstring: 读取 server_default 时间戳
        return row

    async def get(self, snapshot_id: str) -> Optional[SavedSnapshotModel]:
        """Fetch snapshot by id."""
        return await self._session.get(SavedSnapshotModel, snapshot_id)

    async def list(self, *, offset: int = 0, limit: int = 50) -> List[SavedSnapshotModel]:
        """Newest first."""
        stmt = (
            select(SavedSnapshotModel)
            .order_by(SavedSnapshotModel.created_at.desc(), SavedSnapshotModel.id)
            .offset(offset)
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def count(self) -> int:
        stmt = select(func.count()).select_from(SavedSnapshotModel)
        return int((await self._session.execute(stmt)).scalar_one())

    async def delete(self, snapshot_id: str) -> bool:
        """Delete by id; False when absent."""
        row = await self.get(snapshot_id)
        if row is None:
            return False
        await self._session.delete(row)
        await self._session.flush()
        return True
