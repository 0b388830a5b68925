# src/find_parametric/backend/schemas/restrictions.py

"""
[职责] Restriction 契约层：定义规范化查询限制 QueryRestrictions、增量 PartialRestriction 与 ParametricRequest。
[边界] 仅做结构与不变量校验（minDate <= maxDate、minScore >= 0）；组合/序列化逻辑在 pipelines/restriction。
[上游关系] api/schemas_http 解析 HTTP 参数后构造；sync controller 每次交互生成新实例。
[下游关系] engine 适配器、bucketing/values/export pipelines 以只读方式消费。
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from find_parametric.backend.utils.constants import DEFAULT_FIELD_TEXT, DEFAULT_MIN_SCORE, DEFAULT_QUERY_TEXT


def normalize_datetime(value: Optional[datetime]) -> Optional[datetime]:
    """
    [职责] 将日期统一为 UTC 且截断到毫秒精度。
    [边界] naive datetime 视为 UTC；不做时区推断。
    [上游关系] QueryRestrictions 校验器与 restriction codec 调用。
    [下游关系] 保证 serialize/deserialize 往返后值相等。
    """

    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)  # docstring: naive -> UTC
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)  # docstring: 毫秒精度


def _as_sequence(value: Any) -> Tuple[Any, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value else ()
    return tuple(value)


class SortParam(str, Enum):
    """parametric 值排序方式。"""

    DOCUMENT_COUNT = "DocumentCount"  # docstring: 按文档数降序
    NUMBER_INCREASING = "NumberIncreasing"  # docstring: 按数值升序


class QueryRestrictions(BaseModel):
    """
    [职责] 规范化查询限制（不可变值对象）：queryText/fieldText/databases/日期区间/minScore/stateMatchIds。
    [边界] 永不原地修改；任何交互都产生新实例；databases 视为集合（排序去重）。
    [上游关系] RestrictionModel.compose / HTTP 参数解析 / 快照反序列化。
    [下游关系] engine 查询、bucketing、dependent values、export；可 hash，作为 memo key。
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    query_text: str = Field(default=DEFAULT_QUERY_TEXT)  # docstring: 查询文本（"*" 匹配全部）
    field_text: str = Field(default=DEFAULT_FIELD_TEXT)  # docstring: 字段限制表达式（MATCH/NRANGE/RANGE）
    databases: Tuple[str, ...] = Field(default=())  # docstring: 索引集合（排序去重）
    min_date: Optional[datetime] = Field(default=None)  # docstring: 最早日期（UTC，毫秒精度）
    max_date: Optional[datetime] = Field(default=None)  # docstring: 最晚日期（UTC，毫秒精度）
    min_score: int = Field(default=DEFAULT_MIN_SCORE)  # docstring: 最低相关度
    state_match_ids: Tuple[str, ...] = Field(default=())  # docstring: state token 序列（保持顺序）

    @field_validator("query_text", mode="before")
    @classmethod
    def _default_query_text(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_QUERY_TEXT  # docstring: 空查询等价于匹配全部
        return v

    @field_validator("field_text", mode="before")
    @classmethod
    def _default_field_text(cls, v: Any) -> Any:
        return DEFAULT_FIELD_TEXT if v is None else v

    @field_validator("databases", mode="before")
    @classmethod
    def _normalize_databases(cls, v: Any) -> Tuple[str, ...]:
        return tuple(sorted({str(x) for x in _as_sequence(v) if str(x)}))  # docstring: 集合语义

    @field_validator("state_match_ids", mode="before")
    @classmethod
    def _normalize_state_ids(cls, v: Any) -> Tuple[str, ...]:
        return tuple(str(x) for x in _as_sequence(v))

    @field_validator("min_date", "max_date", mode="after")
    @classmethod
    def _normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return normalize_datetime(v)

    @model_validator(mode="after")
    def _check_invariants(self) -> "QueryRestrictions":
        if self.min_score < 0:
            raise ValueError("minScore must be >= 0")
        if self.min_date is not None and self.max_date is not None and self.min_date > self.max_date:
            raise ValueError("minDate must be <= maxDate")
        return self


class PartialRestriction(BaseModel):
    """
    [职责] restriction 增量：仅包含显式设置的字段；compose 时覆盖 base 对应字段。
    [边界] 不校验组合后的不变量（由 compose 负责）。
    """

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    query_text: Optional[str] = None
    field_text: Optional[str] = None
    databases: Optional[Tuple[str, ...]] = None
    min_date: Optional[datetime] = None
    max_date: Optional[datetime] = None
    min_score: Optional[int] = None
    state_match_ids: Optional[Tuple[str, ...]] = None


class ParametricRequest(BaseModel):
    """
    [职责] 一次 parametric 值查询：字段列表（唯一、有序）+ restrictions + maxValues + sort + 起始位置。
    [边界] start 为 1-based 绝对位置；max_values 为绝对上界（与分页器语义一致）。
    [上游关系] services / DependentValuesResolver / ParametricPaginator 构造。
    [下游关系] FieldStatisticsEngine.query_tag_values。
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    field_names: Tuple[str, ...] = Field(...)  # docstring: 字段名（唯一；顺序决定并列时的输出顺序）
    restrictions: QueryRestrictions = Field(default_factory=QueryRestrictions)
    max_values: Optional[int] = Field(default=None, ge=1)
    sort: SortParam = Field(default=SortParam.DOCUMENT_COUNT)
    start: int = Field(default=1, ge=1)

    @field_validator("field_names", mode="before")
    @classmethod
    def _check_field_names(cls, v: Any) -> Tuple[str, ...]:
        names = tuple(str(x) for x in _as_sequence(v))
        if not names:
            raise ValueError("fieldNames must not be empty")
        if len(set(names)) != len(names):
            raise ValueError("fieldNames must be unique")
        return names
