# src/find_parametric/backend/schemas/snapshots.py

"""
[职责] Saved snapshot 契约层：快照内容（序列化 restrictions + parametric 值/区间 + related concepts）与摘要行。
[边界] 不包含持久化逻辑（db/repo 负责）与摘要渲染逻辑（services/snapshot_service 负责）。
[上游关系] sync controller 导出状态；api 请求体。
[下游关系] SnapshotRepo 落库；restore 时重建 FacetSyncController。
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .parametric import FieldKind


class SnapshotRange(BaseModel):
    """快照中的一个数值/日期区间选择。"""

    model_config = ConfigDict(frozen=True)

    field_name: str
    kind: FieldKind
    min: float
    max: float


class SnapshotState(BaseModel):
    """
    [职责] 可持久化的 facet 状态：序列化 restrictions 与 UI 所需的选择信息。
    [边界] restrictions 为 RestrictionModel.serialize 的输出字符串（保证往返）。
    """

    title: str = Field(..., min_length=1, max_length=200)
    restrictions: str  # docstring: serialize(QueryRestrictions)
    parametric_values: Dict[str, List[str]] = Field(default_factory=dict)  # docstring: field -> 选中值
    parametric_ranges: List[SnapshotRange] = Field(default_factory=list)
    related_concepts: List[str] = Field(default_factory=list)
    result_count: Optional[int] = Field(default=None, ge=0)


class SavedSnapshot(SnapshotState):
    """已落库快照（含 id 与时间戳）。"""

    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SnapshotSummaryRow(BaseModel):
    """“Query Restrictions” 面板中的一行。"""

    title: str
    content: str
