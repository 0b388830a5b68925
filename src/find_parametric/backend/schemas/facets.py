# src/find_parametric/backend/schemas/facets.py

"""
[职责] Facet UI 状态契约：Selection（每个数值/日期字段一个 widget）与 FilterLabel。
[边界] 仅结构定义；状态迁移由 pipelines/sync/controller.py 负责（每次迁移替换实例，不原地修改）。
[上游关系] FacetSyncController 创建/替换。
[下游关系] 快照持久化、last-known-good 状态、HTTP 输出。
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .parametric import Bucket, FieldKind


Range = Tuple[float, float]  # docstring: (min, max)


class Selection(BaseModel):
    """
    [职责] 单字段 facet widget 的实时状态。
    [边界] bounds 为该字段在“排除自身选择”的 restrictions 下观测到的区间；
          active_range 为用户选择（None 表示 Inactive）；label 由 active_range 推导。
    """

    model_config = ConfigDict(frozen=True)

    widget_id: str
    field_name: str
    kind: FieldKind
    bounds: Optional[Range] = Field(default=None)  # docstring: 未选择时显示的 min/max
    active_range: Optional[Range] = Field(default=None)  # docstring: 当前选择区间
    label: Optional[str] = Field(default=None)  # docstring: filter label 文本
    expanded: bool = Field(default=False)  # docstring: 是否为主 widget
    buckets: Tuple[Bucket, ...] = Field(default=())
    generation: int = Field(default=0)  # docstring: 桶数据对应的 restriction generation
    computed_for: Optional[str] = Field(default=None, repr=False)  # docstring: 桶数据所用 restrictions 视图（序列化）

    @property
    def is_active(self) -> bool:
        return self.active_range is not None

    @property
    def display_range(self) -> Optional[Range]:
        """Min/max shown in the widget's text inputs."""
        return self.active_range if self.active_range is not None else self.bounds

    def to_state(self) -> Dict[str, Any]:
        """JSON-safe projection used for last-known-good state and snapshots."""
        return {
            "widget_id": self.widget_id,
            "field_name": self.field_name,
            "kind": self.kind.value,
            "bounds": list(self.bounds) if self.bounds else None,
            "active_range": list(self.active_range) if self.active_range else None,
            "label": self.label,
            "expanded": self.expanded,
            "buckets": [b.model_dump() for b in self.buckets],
            "generation": self.generation,
        }


class FilterLabel(BaseModel):
    """filter label chip（与 active Selection 一一对应）。"""

    model_config = ConfigDict(frozen=True)

    field_name: str
    widget_id: str
    text: str
