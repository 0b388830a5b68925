# src/find_parametric/backend/pipelines/restriction/fieldtext.py
"""
[职责] Field text：将 parametric 值选择与数值/日期区间编码为字段限制表达式，并可解析回结构化 term。
[边界] 仅支持 MATCH{..}:F / NRANGE{lo,hi}:F / RANGE{lo,hi}:F 以 " AND " 连接；值做 URL 编码。
[上游关系] RestrictionModel 在 facet 交互后生成新的 fieldText。
[下游关系] InMemoryEngine 评估同一语法；DependentValuesResolver 读取已选值做自排除。
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Literal, Optional, Sequence, Tuple
from urllib.parse import quote, unquote

from find_parametric.backend.utils.errors import InvalidRestrictionError


TermOperator = Literal["MATCH", "NRANGE", "RANGE"]  # docstring: MATCH=值选择，NRANGE=数值区间，RANGE=日期区间（epoch 秒）

TERM_JOINER = " AND "
_TERM_RE = re.compile(r"^(MATCH|NRANGE|RANGE)\{([^{}]*)\}:([^\s{}]+)$")


def format_number(value: float) -> str:
    """Shortest exact text for a bound (integers print without a decimal point)."""
    v = float(value)
    if v.is_integer():
        return str(int(v))
    return repr(v)


@dataclass(frozen=True)
class FieldTextTerm:
    """
    [职责] 单个字段限制 term。
    [边界] values 对 MATCH 为原始值；对 NRANGE/RANGE 恰为 (lo, hi) 两个数字文本。
    """

    operator: TermOperator
    field_name: str
    values: Tuple[str, ...]

    @property
    def is_range(self) -> bool:
        return self.operator != "MATCH"

    @property
    def range(self) -> Tuple[float, float]:
        if not self.is_range:
            raise ValueError("MATCH term has no range")
        return float(self.values[0]), float(self.values[1])

    def render(self) -> str:
        if self.is_range:
            body = ",".join(self.values)
        else:
            body = ",".join(quote(v, safe="") for v in self.values)
        return f"{self.operator}{{{body}}}:{self.field_name}"


def match_term(field_name: str, values: Iterable[str]) -> FieldTextTerm:
    return FieldTextTerm("MATCH", field_name, tuple(values))


def range_term(field_name: str, lo: float, hi: float, *, is_date: bool = False) -> FieldTextTerm:
    return FieldTextTerm("RANGE" if is_date else "NRANGE", field_name, (format_number(lo), format_number(hi)))


def build_field_text(terms: Sequence[FieldTextTerm]) -> str:
    """Render terms joined by AND; an empty sequence renders as ""."""
    return TERM_JOINER.join(t.render() for t in terms if t.values)


def parse_field_text(text: Optional[str]) -> List[FieldTextTerm]:
    """
    [职责] 解析 fieldText 为 term 列表（保持顺序）。
    [边界] 不认识的片段直接抛 InvalidRestrictionError；空文本返回 []。
    """

    if text is None or not text.strip():
        return []

    terms: List[FieldTextTerm] = []
    for chunk in text.strip().split(TERM_JOINER):
        m = _TERM_RE.match(chunk.strip())
        if not m:
            raise InvalidRestrictionError(
                message="unparseable fieldText term",
                detail={"term": chunk},
            )
        operator, body, field_name = m.group(1), m.group(2), m.group(3)
        raw_values = body.split(",") if body else []
        if operator == "MATCH":
            values = tuple(unquote(v) for v in raw_values)
            if not values:
                raise InvalidRestrictionError(message="MATCH term needs a value", detail={"term": chunk})
        else:
            if len(raw_values) != 2:
                raise InvalidRestrictionError(message="range term needs two bounds", detail={"term": chunk})
            try:
                lo, hi = float(raw_values[0]), float(raw_values[1])
            except ValueError as exc:
                raise InvalidRestrictionError(
                    message="range bound is not a number",
                    detail={"term": chunk},
                    cause=exc,
                ) from exc
            if not (math.isfinite(lo) and math.isfinite(hi)):
                raise InvalidRestrictionError(message="range bound is not finite", detail={"term": chunk})
            if lo > hi:
                raise InvalidRestrictionError(message="range min exceeds max", detail={"term": chunk})
            values = (format_number(lo), format_number(hi))
        terms.append(FieldTextTerm(operator, field_name, values))  # type: ignore[arg-type]
    return terms


def selected_values(terms: Sequence[FieldTextTerm], field_name: str) -> Tuple[str, ...]:
    """All MATCH values chosen for a field, in order of appearance."""
    out: List[str] = []
    for t in terms:
        if t.operator == "MATCH" and t.field_name == field_name:
            out.extend(v for v in t.values if v not in out)
    return tuple(out)


def selected_range(terms: Sequence[FieldTextTerm], field_name: str) -> Optional[Tuple[float, float]]:
    for t in terms:
        if t.is_range and t.field_name == field_name:
            return t.range
    return None


def without_field(
    terms: Sequence[FieldTextTerm],
    field_name: str,
    *,
    ranges_only: bool = False,
) -> List[FieldTextTerm]:
    """Drop a field's terms (only its range terms when ranges_only)."""
    return [
        t for t in terms if t.field_name != field_name or (ranges_only and not t.is_range)
    ]
