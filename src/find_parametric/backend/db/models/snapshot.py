# src/find_parametric/backend/db/models/snapshot.py

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import JSON, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..base import Base, TimestampMixin


class SavedSnapshotModel(Base, TimestampMixin):
    """
    [职责] SavedSnapshot：保存的搜索快照（序列化 restrictions + parametric 值/区间 + related concepts）。
    [边界] restrictions 以 RestrictionModel.serialize 文本原样保存，不拆列；不保存桶数据。
    [上游关系] services/snapshot_service.save_snapshot 写入。
    [下游关系] restore_snapshot 反序列化并重建 FacetSyncController；snapshot_summary 生成面板行。
    """

    __tablename__ = "saved_snapshot"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="快照ID（UUID）",
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False, comment="快照标题")

    restrictions: Mapped[str] = mapped_column(Text, nullable=False, comment="序列化 QueryRestrictions")

    parametric_values: Mapped[dict] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
        comment="字段 -> 选中值列表",
    )

    parametric_ranges: Mapped[list] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        comment="数值/日期区间选择（field_name/kind/min/max）",
    )

    related_concepts: Mapped[list] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        comment="related concepts",
    )

    result_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, comment="保存时的结果数")
