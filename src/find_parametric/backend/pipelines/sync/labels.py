# src/find_parametric/backend/pipelines/sync/labels.py
"""
[职责] 字段显示名与 filter label 文本：prettify_field_name、可配置显示名映射、数值/日期区间格式化。
[边界] 数值标签走 rounder（不含 ":"）；日期标签为 YYYY/MM/DD HH:mm（含 "/" 与 ":"），两者可区分。
[上游关系] FacetSyncController、restricted values、snapshot 摘要调用。
[下游关系] FilterLabel.text、TagValues.display_name、Query Restrictions 面板。
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from find_parametric.backend.pipelines.bucketing.rounding import round_value
from find_parametric.backend.schemas.parametric import FieldKind
from find_parametric.backend.utils.constants import DATE_LABEL_FORMAT, LABEL_SEPARATOR, RANGE_SEPARATOR


def prettify_field_name(field_name: str) -> str:
    """'/DOCUMENT/CONTENT_TYPE' -> 'Content Type'."""
    tail = field_name.rstrip("/").rsplit("/", 1)[-1]
    words = tail.replace("_", " ").split()
    return " ".join(w.capitalize() for w in words) or field_name


def format_date_value(epoch_seconds: float) -> str:
    return datetime.fromtimestamp(float(epoch_seconds), tz=timezone.utc).strftime(DATE_LABEL_FORMAT)


def format_bounds(bounds: Tuple[float, float], kind: FieldKind) -> Tuple[str, str]:
    lo, hi = bounds
    if kind == FieldKind.DATE:
        return format_date_value(lo), format_date_value(hi)
    return round_value(lo, lo, hi), round_value(hi, lo, hi)


def format_range(bounds: Tuple[float, float], kind: FieldKind) -> str:
    """'<min> – <max>' (en dash)."""
    return RANGE_SEPARATOR.join(format_bounds(bounds, kind))


def range_label(display_name: str, bounds: Tuple[float, float], kind: FieldKind) -> str:
    return f"{display_name}{LABEL_SEPARATOR}{format_range(bounds, kind)}"


class ParametricDisplayValue(BaseModel):
    name: str
    display_name: str = Field(..., alias="displayName")

    model_config = ConfigDict(populate_by_name=True)


class ParametricFieldDisplay(BaseModel):
    """单字段显示配置：字段显示名 + 值显示名。"""

    name: str
    display_name: Optional[str] = Field(default=None, alias="displayName")
    values: List[ParametricDisplayValue] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class ParametricDisplayValues:
    """
    [职责] 字段/值显示名映射；未配置时字段名回退到 prettify_field_name，值回退到引擎给出的显示值。
    [边界] 只读；不做 i18n。
    """

    def __init__(self, fields: Iterable[ParametricFieldDisplay] = ()) -> None:
        self._fields: Dict[str, ParametricFieldDisplay] = {f.name: f for f in fields}

    @classmethod
    def from_config(cls, items: Iterable[Mapping[str, object]]) -> "ParametricDisplayValues":
        return cls(ParametricFieldDisplay.model_validate(dict(i)) for i in items)

    def field_display_name(self, field_name: str) -> str:
        cfg = self._fields.get(field_name)
        if cfg is not None and cfg.display_name:
            return cfg.display_name
        return prettify_field_name(field_name)

    def value_display(self, field_name: str, value: str, default: Optional[str] = None) -> str:
        cfg = self._fields.get(field_name)
        if cfg is not None:
            for v in cfg.values:
                if v.name == value:
                    return v.display_name
        return default if default is not None else value
