# src/find_parametric/backend/api/schemas_http/parametric.py

"""
[职责] parametric 路由的 HTTP 输出契约（restricted / buckets / dependent-values）。
[边界] 输出字段为 snake_case；内容直接复用 backend/schemas/parametric。
"""

from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field

from find_parametric.backend.schemas.parametric import DependentFieldNode, RangeInfo, TagValues


class RestrictedValuesResponse(BaseModel):
    fields: List[TagValues] = Field(default_factory=list)
    timing_ms: Dict[str, float] = Field(default_factory=dict)


class BucketedValuesResponse(BaseModel):
    range_info: RangeInfo
    timing_ms: Dict[str, float] = Field(default_factory=dict)


class DependentValuesResponse(BaseModel):
    nodes: List[DependentFieldNode] = Field(default_factory=list)
    engine_calls: int = 0  # docstring: 去重后的引擎请求数
    timing_ms: Dict[str, float] = Field(default_factory=dict)
