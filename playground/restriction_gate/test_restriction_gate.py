# playground/restriction_gate/test_restriction_gate.py

"""
[职责] Restriction gate：锁定 compose 不变量、fieldText 语法往返、restrictions 序列化往返。
[边界] 纯函数测试；不访问 engine/DB。
[上游关系] backend/pipelines/restriction/{model,fieldtext,codec}.py。
[下游关系] sync controller / 快照 / engine 评估依赖这些合同。
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from find_parametric.backend.pipelines.restriction.codec import (
    deserialize,
    format_date,
    serialize,
    to_payload,
)
from find_parametric.backend.pipelines.restriction.fieldtext import (
    build_field_text,
    match_term,
    parse_field_text,
    range_term,
    selected_range,
    selected_values,
)
from find_parametric.backend.pipelines.restriction.model import (
    add_value,
    chosen_ranges,
    chosen_values,
    compose,
    exclude_field_range,
    query_concepts,
    remove_value,
    restrict_to_value,
    with_concept,
    with_range,
    with_values,
)
from find_parametric.backend.schemas.restrictions import PartialRestriction, QueryRestrictions
from find_parametric.backend.utils.errors import InvalidRestrictionError


pytestmark = pytest.mark.restriction_gate


# -----------------------------
# compose
# -----------------------------


def test_compose_returns_new_instance_and_keeps_base() -> None:
    base = QueryRestrictions(databases=["films"])
    composed = compose(base, {"queryText": "market"})

    assert composed is not base
    assert composed.query_text == "market"
    assert composed.databases == ("films",)  # docstring: 未设置字段继承 base
    assert base.query_text == "*"  # docstring: base 不被修改


def test_compose_rejects_inverted_dates_and_keeps_base() -> None:
    start = datetime(2021, 6, 1, tzinfo=timezone.utc)
    base = QueryRestrictions(min_date=start)

    with pytest.raises(InvalidRestrictionError):
        compose(base, PartialRestriction(max_date=start - timedelta(days=1)))

    assert base.max_date is None
    assert base.min_date == start


def test_compose_rejects_negative_min_score() -> None:
    with pytest.raises(InvalidRestrictionError) as excinfo:
        compose(QueryRestrictions(), {"min_score": -1})
    assert excinfo.value.error_code == "RESTRICTION__INVALID"


def test_compose_unknown_delta_key_is_invalid() -> None:
    with pytest.raises(InvalidRestrictionError):
        compose(QueryRestrictions(), {"notAField": 1})


def test_databases_are_a_set() -> None:
    r = QueryRestrictions(databases=["films", "books", "films"])
    assert r.databases == ("books", "films")
    assert r == QueryRestrictions(databases=["books", "films"])
    assert hash(r) == hash(QueryRestrictions(databases=("films", "books")))  # docstring: 可作为 memo key


# -----------------------------
# field text
# -----------------------------


def test_field_text_round_trip_with_reserved_characters() -> None:
    terms = [
        match_term("CATEGORY", ["news", "a,b", "x AND y"]),
        range_term("PRICE", 0, 500),
        range_term("PUBLISHED", 1577836800, 1580515200, is_date=True),
    ]
    text = build_field_text(terms)

    assert "NRANGE{0,500}:PRICE" in text
    assert "RANGE{1577836800,1580515200}:PUBLISHED" in text
    assert parse_field_text(text) == terms


def test_field_text_range_renders_fractions_exactly() -> None:
    term = range_term("PRICE", 0.5, 12.25)
    assert term.render() == "NRANGE{0.5,12.25}:PRICE"
    assert parse_field_text(term.render())[0].range == (0.5, 12.25)


@pytest.mark.parametrize(
    "text",
    [
        "MATCH{}:CATEGORY",
        "NRANGE{1}:PRICE",
        "NRANGE{a,b}:PRICE",
        "NRANGE{10,1}:PRICE",
        "NRANGE{nan,1}:PRICE",
        "NRANGE{0,inf}:PRICE",
        "RANGE{-inf,1}:PUBLISHED",
        "CATEGORY=news",
    ],
)
def test_field_text_rejects_malformed_terms(text: str) -> None:
    with pytest.raises(InvalidRestrictionError):
        parse_field_text(text)


def test_empty_field_text_has_no_terms() -> None:
    assert parse_field_text("") == []
    assert parse_field_text(None) == []
    assert build_field_text([]) == ""


# -----------------------------
# value / range projections
# -----------------------------


def test_value_selection_add_remove() -> None:
    r = add_value(QueryRestrictions(), "CATEGORY", "news")
    r = add_value(r, "CATEGORY", "sport")
    assert add_value(r, "CATEGORY", "news") is r  # docstring: 已选值不重复添加
    assert chosen_values(r) == {"CATEGORY": ("news", "sport")}

    r = remove_value(r, "CATEGORY", "news")
    assert chosen_values(r) == {"CATEGORY": ("sport",)}
    assert with_values(r, "CATEGORY", []).field_text == ""


def test_with_range_replaces_and_clears_only_that_field() -> None:
    r = with_values(QueryRestrictions(), "CATEGORY", ["news"])
    r = with_range(r, "PRICE", (0, 500))
    assert r.field_text == "MATCH{news}:CATEGORY AND NRANGE{0,500}:PRICE"

    r = with_range(r, "PRICE", (100, 200))
    assert chosen_ranges(r) == {"PRICE": ("NRANGE", (100.0, 200.0))}

    cleared = with_range(r, "PRICE", None)
    assert cleared.field_text == "MATCH{news}:CATEGORY"


def test_with_range_rejects_inverted_bounds() -> None:
    with pytest.raises(InvalidRestrictionError):
        with_range(QueryRestrictions(), "PRICE", (10, 1))


@pytest.mark.parametrize("bounds", [(0, float("nan")), (float("nan"), float("nan")), (float("-inf"), 1)])
def test_with_range_rejects_non_finite_bounds(bounds) -> None:
    base = with_values(QueryRestrictions(), "CATEGORY", ["news"])
    with pytest.raises(InvalidRestrictionError):
        with_range(base, "PRICE", bounds)
    assert base.field_text == "MATCH{news}:CATEGORY"


def test_exclude_field_range_is_the_widget_view() -> None:
    r = with_range(with_range(QueryRestrictions(), "PRICE", (0, 500)), "SIZE", (10, 40))
    view = exclude_field_range(r, "PRICE")
    terms = parse_field_text(view.field_text)

    assert selected_range(terms, "PRICE") is None
    assert selected_range(terms, "SIZE") == (10.0, 40.0)
    assert exclude_field_range(view, "PRICE") is view  # docstring: 无自身区间时原样返回


def test_restrict_to_value_and_concepts() -> None:
    r = restrict_to_value(QueryRestrictions(), "COLOUR", "red")
    assert selected_values(parse_field_text(r.field_text), "COLOUR") == ("red",)

    r = with_concept(r, "big dogs")
    r = with_concept(r, "cats")
    assert r.query_text == '"big dogs" AND cats'
    assert query_concepts(r) == ("big dogs", "cats")
    assert with_concept(r, "cats") is r
    assert query_concepts(QueryRestrictions()) == ()


# -----------------------------
# codec
# -----------------------------


def test_serialize_round_trip_preserves_every_field() -> None:
    r = QueryRestrictions(
        query_text="market AND report",
        field_text="MATCH{news}:CATEGORY AND NRANGE{0,500}:PRICE",
        databases=["films", "books"],
        min_date=datetime(2020, 1, 1, 12, 0, 0, 123456, tzinfo=timezone.utc),
        max_date=datetime(2020, 12, 31, tzinfo=timezone.utc),
        min_score=20,
        state_match_ids=["s2", "s1"],
    )
    text = serialize(r)
    restored = deserialize(text)

    assert restored == r
    assert serialize(restored) == text  # docstring: 序列化确定性
    assert restored.state_match_ids == ("s2", "s1")  # docstring: state token 保序


def test_dates_serialize_with_millisecond_precision() -> None:
    value = datetime(2020, 1, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
    assert format_date(value) == "2020-01-01T12:00:00.123Z"

    naive = datetime(2020, 1, 1)
    payload = to_payload(QueryRestrictions(min_date=naive))
    assert payload["minDate"] == "2020-01-01T00:00:00.000Z"  # docstring: naive 视为 UTC


@pytest.mark.parametrize("year", [1, 999])
def test_early_years_serialize_zero_padded_and_round_trip(year: int) -> None:
    r = QueryRestrictions(
        min_date=datetime(year, 1, 1, tzinfo=timezone.utc),
        max_date=datetime(year, 6, 30, 23, 59, 59, 999000, tzinfo=timezone.utc),
    )
    assert format_date(r.min_date) == f"{year:04d}-01-01T00:00:00.000Z"
    assert deserialize(serialize(r)) == r


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[]",
        '{"minScore": -1}',
        '{"minDate": "2020-01-01"}',
        '{"minDate": "2021-01-01T00:00:00.000Z", "maxDate": "2020-01-01T00:00:00.000Z"}',
    ],
)
def test_deserialize_rejects_invalid_text(text: str) -> None:
    with pytest.raises(InvalidRestrictionError):
        deserialize(text)
