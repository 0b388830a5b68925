# src/find_parametric/backend/db/repo/__init__.py

"""
[职责] db.repo 聚合导出：集中暴露仓储对象，供 service 层调用。
[边界] 仅做导入与 __all__ 暴露；不包含业务编排。
"""

from __future__ import annotations

from .snapshot_repo import SnapshotRepo

__all__ = [
    "SnapshotRepo",
]
