# src/find_parametric/backend/schemas/parametric.py

"""
[职责] Parametric 契约层：分桶参数/桶/RangeInfo、字段值计数与 dependent values 递归结构。
[边界] 不包含计算逻辑；bucketing/values pipelines 负责生成。
[上游关系] pipelines/bucketing、pipelines/values 产出这些结构。
[下游关系] services 返回给 api；sync controller 保存到 Selection。
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FieldKind(str, Enum):
    """可分桶字段类型。"""

    NUMERIC = "Numeric"
    DATE = "Date"


class BucketingParams(BaseModel):
    """
    [职责] 单字段分桶参数：目标桶数 + 可选显式区间。
    [边界] range_min/range_max 必须同时给出或同时缺省；缺省时使用观测到的 min/max。
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    target_bucket_count: int = Field(..., gt=0)  # docstring: 目标桶数（> 0）
    range_min: Optional[float] = Field(default=None, allow_inf_nan=False)  # docstring: 显式下界（用户输入）
    range_max: Optional[float] = Field(default=None, allow_inf_nan=False)  # docstring: 显式上界（用户输入）

    @model_validator(mode="after")
    def _check_range(self) -> "BucketingParams":
        if (self.range_min is None) != (self.range_max is None):
            raise ValueError("rangeMin and rangeMax must be given together")
        if self.range_min is not None and self.range_min > self.range_max:
            raise ValueError("rangeMin must be <= rangeMax")
        return self

    @property
    def has_explicit_range(self) -> bool:
        return self.range_min is not None


class Bucket(BaseModel):
    """单个桶：[lower, upper)（最后一个桶为闭区间）。"""

    model_config = ConfigDict(frozen=True)

    lower_bound: float
    upper_bound: float
    count: int = Field(default=0, ge=0)


class RangeInfo(BaseModel):
    """
    [职责] 单字段分桶结果（bucketed-values 响应体）。
    [边界] count 为落入桶内的文档数（缺字段文档不计）；total_matching 为满足 restrictions 的文档总数。
    """

    model_config = ConfigDict(frozen=True)

    field_name: str
    kind: FieldKind = Field(default=FieldKind.NUMERIC)
    min: Optional[float] = Field(default=None)  # docstring: 分桶区间下界（无值且无显式区间时为 None）
    max: Optional[float] = Field(default=None)  # docstring: 分桶区间上界
    bucket_size: Optional[float] = Field(default=None)  # docstring: 桶宽（退化区间为 0）
    count: int = Field(default=0)  # docstring: 桶内文档计数之和
    total_matching: int = Field(default=0)  # docstring: 匹配 restrictions 的文档数
    values: List[Bucket] = Field(default_factory=list)


class FieldValueCount(BaseModel):
    """字段值及其文档计数。"""

    model_config = ConfigDict(frozen=True)

    value: str
    display_value: str
    count: int = Field(default=0, ge=0)


class TagValues(BaseModel):
    """单字段的值计数列表（restricted-values 响应项）。"""

    field_name: str
    display_name: str
    values: List[FieldValueCount] = Field(default_factory=list)
    total_values: int = Field(default=0)  # docstring: 截断前的不同值总数


class DependentValue(BaseModel):
    """dependent 树中的一个取值节点；children 仅包含下一个字段。"""

    value: str
    display_value: str
    count: int = Field(default=0, ge=0)
    children: List["DependentFieldNode"] = Field(default_factory=list)


class DependentFieldNode(BaseModel):
    """dependent 树中的字段节点（深度 = len(fieldNames)）。"""

    field_name: str
    values: List[DependentValue] = Field(default_factory=list)


DependentValue.model_rebuild()
