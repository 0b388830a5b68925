# src/find_parametric/backend/schemas/ids.py

"""
[职责] ID 契约层：统一 trace/request/snapshot/widget 等 ID 的类型别名与生成策略（UUID v4 string）。
[边界] 不依赖数据库 ORM；仅提供类型/工具函数/轻量校验。
[上游关系] 无（纯工具/契约层）。
[下游关系] schemas/* 与 services/api 在创建/传递实体引用时使用。
"""

from __future__ import annotations

from typing import NewType
from uuid import UUID, uuid4


UUIDStr = NewType("UUIDStr", str)  # docstring: 统一 UUID 字符串类型（运行时仍为 str）

SnapshotId = UUIDStr  # docstring: saved_snapshot.id（SQL SavedSnapshotModel.id）
WidgetId = str  # docstring: facet widget 标识（默认等于字段名）


def new_uuid() -> UUIDStr:
    """Generate UUID v4 as string."""
    return UUIDStr(str(uuid4()))


def is_uuid_str(value: str) -> bool:
    """Return True if value parses as UUID string."""
    try:
        UUID(str(value))
    except (TypeError, ValueError):
        return False
    return True
