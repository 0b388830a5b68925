# src/find_parametric/backend/api/schemas_http/snapshots.py

"""
[职责] saved-snapshot 路由的 HTTP 契约：创建请求、快照视图（含摘要行/恢复后的 labels）、列表。
[边界] restrictions 在请求中为结构化 QueryRestrictions，由服务层 serialize 后落库。
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from find_parametric.backend.schemas.restrictions import QueryRestrictions
from find_parametric.backend.schemas.snapshots import SnapshotRange, SnapshotSummaryRow

from find_parametric.backend.api.schemas_http._common import CamelModel


class SnapshotCreateRequest(CamelModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=200)
    restrictions: QueryRestrictions = Field(default_factory=QueryRestrictions)
    related_concepts: List[str] = Field(default_factory=list)
    result_count: Optional[int] = Field(default=None, ge=0)


class SnapshotView(BaseModel):
    id: str
    title: str
    restrictions: str  # docstring: 序列化文本（原样返回）
    parametric_values: Dict[str, List[str]] = Field(default_factory=dict)
    parametric_ranges: List[SnapshotRange] = Field(default_factory=list)
    related_concepts: List[str] = Field(default_factory=list)
    result_count: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    summary: List[SnapshotSummaryRow] = Field(default_factory=list)
    labels: Optional[List[str]] = None  # docstring: restore=true 时为恢复后 controller 的 filter labels


class SnapshotListResponse(BaseModel):
    items: List[SnapshotView] = Field(default_factory=list)
    total: int = 0
