# src/find_parametric/backend/pipelines/restriction/model.py
"""
[职责] RestrictionModel：以纯函数方式组合 QueryRestrictions（每次返回新实例），并提供 facet 选择到 fieldText 的投影。
[边界] 无副作用；组合后违反不变量时抛 InvalidRestrictionError，调用方丢弃 delta 保留原状态。
[上游关系] FacetSyncController / services 在搜索或 facet 交互时调用。
[下游关系] bucketing/values/export pipelines 与 engine 消费组合结果。
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from find_parametric.backend.schemas.restrictions import PartialRestriction, QueryRestrictions
from find_parametric.backend.utils.errors import InvalidRestrictionError
from .fieldtext import (
    FieldTextTerm,
    build_field_text,
    match_term,
    parse_field_text,
    range_term,
    selected_range,
    selected_values,
    without_field,
)


DeltaLike = Union[PartialRestriction, Mapping[str, Any]]


def _validation_detail(exc: ValidationError) -> Dict[str, Any]:
    return {"errors": [str(e.get("msg", "")) for e in exc.errors()]}


def compose(base: QueryRestrictions, delta: DeltaLike) -> QueryRestrictions:
    """
    [职责] 用 delta 中显式设置的字段覆盖 base，产出新的 QueryRestrictions。
    [边界] 纯函数；minDate > maxDate 或 minScore < 0 时抛 InvalidRestrictionError（base 不受影响）。
    """

    if isinstance(delta, PartialRestriction):
        changes = delta.model_dump(exclude_unset=True)
    else:
        try:
            changes = PartialRestriction.model_validate(dict(delta)).model_dump(exclude_unset=True)
        except ValidationError as exc:
            raise InvalidRestrictionError(
                message="invalid restriction delta",
                detail=_validation_detail(exc),
                cause=exc,
            ) from exc

    merged = base.model_dump()
    merged.update(changes)
    try:
        return QueryRestrictions.model_validate(merged)
    except ValidationError as exc:
        raise InvalidRestrictionError(
            message="restriction composition violates invariants",
            detail=_validation_detail(exc),
            cause=exc,
        ) from exc


def field_terms(restrictions: QueryRestrictions) -> List[FieldTextTerm]:
    return parse_field_text(restrictions.field_text)


def _with_terms(restrictions: QueryRestrictions, terms: List[FieldTextTerm]) -> QueryRestrictions:
    return compose(restrictions, PartialRestriction(field_text=build_field_text(terms)))


def with_values(restrictions: QueryRestrictions, field_name: str, values: Iterable[str]) -> QueryRestrictions:
    """Replace the selected values for a field (an empty iterable clears them)."""
    kept = [t for t in field_terms(restrictions) if t.field_name != field_name or t.is_range]
    chosen = tuple(dict.fromkeys(values))
    if chosen:
        kept.append(match_term(field_name, chosen))
    return _with_terms(restrictions, kept)


def add_value(restrictions: QueryRestrictions, field_name: str, value: str) -> QueryRestrictions:
    current = selected_values(field_terms(restrictions), field_name)
    if value in current:
        return restrictions
    return with_values(restrictions, field_name, current + (value,))


def remove_value(restrictions: QueryRestrictions, field_name: str, value: str) -> QueryRestrictions:
    current = selected_values(field_terms(restrictions), field_name)
    return with_values(restrictions, field_name, [v for v in current if v != value])


def with_range(
    restrictions: QueryRestrictions,
    field_name: str,
    bounds: Optional[Tuple[float, float]],
    *,
    is_date: bool = False,
) -> QueryRestrictions:
    """Set (or clear when bounds is None) the numeric/date range term for a field."""
    kept = without_field(field_terms(restrictions), field_name, ranges_only=True)
    if bounds is not None:
        lo, hi = bounds
        if not (math.isfinite(lo) and math.isfinite(hi)):
            raise InvalidRestrictionError(
                message="range bound is not finite",
                detail={"field_name": field_name, "min": str(lo), "max": str(hi)},
            )
        if lo > hi:
            raise InvalidRestrictionError(
                message="range min exceeds max",
                detail={"field_name": field_name, "min": lo, "max": hi},
            )
        kept.append(range_term(field_name, lo, hi, is_date=is_date))
    return _with_terms(restrictions, kept)


def exclude_field_range(restrictions: QueryRestrictions, field_name: str) -> QueryRestrictions:
    """Restrictions as seen by the field's own widget (its own range is not applied)."""
    if selected_range(field_terms(restrictions), field_name) is None:
        return restrictions
    return with_range(restrictions, field_name, None)


def restrict_to_value(restrictions: QueryRestrictions, field_name: str, value: str) -> QueryRestrictions:
    """restrictions AND field == value (used for dependent value recursion)."""
    return add_value(restrictions, field_name, value)


def chosen_values(restrictions: QueryRestrictions) -> Dict[str, Tuple[str, ...]]:
    out: Dict[str, Tuple[str, ...]] = {}
    terms = field_terms(restrictions)
    for t in terms:
        if t.operator == "MATCH" and t.field_name not in out:
            out[t.field_name] = selected_values(terms, t.field_name)
    return out


def chosen_ranges(restrictions: QueryRestrictions) -> Dict[str, Tuple[str, Tuple[float, float]]]:
    """field -> (operator, (min, max)) for every range term."""
    return {t.field_name: (t.operator, t.range) for t in field_terms(restrictions) if t.is_range}


def query_concepts(restrictions: QueryRestrictions) -> Tuple[str, ...]:
    """
    [职责] 从 queryText 中拆出附加的 concept（"a AND b" 形式，去引号/括号）。
    [边界] "*" 不是 concept；不做语言学分析。
    """

    text = restrictions.query_text.strip()
    if not text or text == "*":
        return ()
    parts = [p.strip().strip("()").strip().strip('"').strip() for p in text.split(" AND ")]
    return tuple(p for p in parts if p and p != "*")


def with_concept(restrictions: QueryRestrictions, concept: str) -> QueryRestrictions:
    """Add a concept to the query text (``a`` -> ``a AND "concept"``)."""
    current = query_concepts(restrictions)
    if concept in current:
        return restrictions
    quoted = f'"{concept}"' if " " in concept else concept
    text = quoted if not current else f"{restrictions.query_text} AND {quoted}"
    return compose(restrictions, PartialRestriction(query_text=text))
