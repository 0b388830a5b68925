# playground/bucketing_gate/test_bucketing_gate.py

"""
[职责] Bucketing gate：等宽分桶边界、计数、退化区间、空数据、像素换算与 snap 规则、标签取整。
[边界] 使用种子 InMemoryEngine；不经过 sync controller。
[上游关系] backend/pipelines/bucketing/{engine,geometry,rounding}.py。
[下游关系] facet 直方图与 filter label 依赖此行为。
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from find_parametric.backend.pipelines.base.context import FacetContext
from find_parametric.backend.pipelines.bucketing.engine import (
    bucket_index,
    compute_buckets,
    compute_range_info,
    count_into_buckets,
    partition_range,
)
from find_parametric.backend.pipelines.bucketing.geometry import (
    drag_to_range,
    pixels_to_range,
    range_to_pixels,
    snap_range,
)
from find_parametric.backend.pipelines.bucketing.rounding import decimals_for_range, round_value
from find_parametric.backend.schemas.parametric import BucketingParams, FieldKind
from find_parametric.backend.schemas.restrictions import QueryRestrictions
from find_parametric.backend.utils.errors import BadRequestError


pytestmark = pytest.mark.bucketing_gate


# -----------------------------
# partition / counting
# -----------------------------


def test_partition_five_buckets_over_zero_to_five_hundred() -> None:
    bounds = partition_range(0, 500, 5)
    assert bounds == [(0.0, 100.0), (100.0, 200.0), (200.0, 300.0), (300.0, 400.0), (400.0, 500.0)]


def test_partition_is_contiguous_and_ends_exactly_at_max() -> None:
    bounds = partition_range(0, 1, 3)
    assert len(bounds) == 3
    assert bounds[0][0] == 0.0
    assert bounds[-1][1] == 1.0
    for left, right in zip(bounds, bounds[1:]):
        assert left[1] == right[0]  # docstring: upper_i == lower_{i+1}


def test_partition_keeps_count_for_small_integer_ranges() -> None:
    assert len(partition_range(0, 3, 10)) == 10


def test_partition_degenerate_range_is_one_bucket() -> None:
    assert partition_range(7, 7, 5) == [(7.0, 7.0)]


@pytest.mark.parametrize("args", [(0, 10, 0), (10, 0, 3)])
def test_partition_rejects_bad_arguments(args) -> None:
    with pytest.raises(ValueError):
        partition_range(*args)


def test_bucket_index_half_open_with_closed_last_bucket() -> None:
    bounds = partition_range(0, 500, 5)
    assert bucket_index(0, bounds) == 0
    assert bucket_index(100, bounds) == 1  # docstring: 下界属于当前桶
    assert bucket_index(499.99, bounds) == 4
    assert bucket_index(500, bounds) == 4  # docstring: 最后一个桶闭区间
    assert bucket_index(-1, bounds) is None
    assert bucket_index(500.01, bounds) is None


def test_count_into_buckets_drops_values_outside() -> None:
    buckets = count_into_buckets([0, 100, 250, 400, 500, 600, 1000], partition_range(0, 500, 5))
    assert [b.count for b in buckets] == [1, 1, 1, 1, 1]


# -----------------------------
# compute_range_info (engine)
# -----------------------------


@pytest.mark.asyncio
async def test_range_info_uses_observed_range(ctx: FacetContext) -> None:
    info = await compute_range_info(ctx, "PRICE", BucketingParams(target_bucket_count=5), QueryRestrictions())

    assert (info.min, info.max) == (0.0, 1000.0)
    assert info.bucket_size == 200.0
    assert [b.count for b in info.values] == [2, 1, 2, 2, 1]
    assert info.count == 8  # docstring: d9 缺 PRICE，不计入桶
    assert info.total_matching == 9
    assert info.count <= info.total_matching


@pytest.mark.asyncio
async def test_range_info_explicit_range(ctx: FacetContext) -> None:
    params = BucketingParams(target_bucket_count=5, range_min=0, range_max=500)
    info = await compute_range_info(ctx, "PRICE", params, QueryRestrictions())

    assert [(b.lower_bound, b.upper_bound) for b in info.values] == partition_range(0, 500, 5)
    assert [b.count for b in info.values] == [1, 1, 1, 1, 1]
    assert info.count == 5


@pytest.mark.asyncio
async def test_range_info_is_stable_across_calls(ctx: FacetContext) -> None:
    params = BucketingParams(target_bucket_count=7)
    r = QueryRestrictions(databases=["films"])
    first = await compute_range_info(ctx, "PRICE", params, r)
    second = await compute_range_info(ctx, "PRICE", params, r)
    assert first == second


@pytest.mark.asyncio
async def test_range_info_degenerate_data(ctx: FacetContext) -> None:
    r = QueryRestrictions(field_text="NRANGE{500,500}:PRICE")
    info = await compute_range_info(ctx, "PRICE", BucketingParams(target_bucket_count=5), r)

    assert len(info.values) == 1
    assert (info.values[0].lower_bound, info.values[0].upper_bound) == (500.0, 500.0)
    assert info.values[0].count == 1
    assert info.bucket_size == 0.0


@pytest.mark.asyncio
async def test_range_info_empty_result(ctx: FacetContext) -> None:
    r = QueryRestrictions(field_text="MATCH{nothing}:CATEGORY")
    info = await compute_range_info(ctx, "PRICE", BucketingParams(target_bucket_count=5), r)

    assert info.values == []
    assert info.min is None and info.max is None
    assert info.total_matching == 0

    explicit = BucketingParams(target_bucket_count=5, range_min=0, range_max=10)
    buckets = await compute_buckets(ctx, "PRICE", explicit, r)
    assert len(buckets) == 5
    assert all(b.count == 0 for b in buckets)


@pytest.mark.asyncio
async def test_range_info_date_field(ctx: FacetContext) -> None:
    info = await compute_range_info(ctx, "PUBLISHED", BucketingParams(target_bucket_count=4), QueryRestrictions())

    assert info.kind == FieldKind.DATE
    assert info.min == datetime(2020, 1, 1, tzinfo=timezone.utc).timestamp()
    assert info.max == datetime(2020, 9, 1, tzinfo=timezone.utc).timestamp()
    assert info.count == 9


def test_bucketing_params_validation() -> None:
    with pytest.raises(ValueError):
        BucketingParams(target_bucket_count=0)
    with pytest.raises(ValueError):
        BucketingParams(target_bucket_count=3, range_min=1)
    with pytest.raises(ValueError):
        BucketingParams(target_bucket_count=3, range_min=5, range_max=1)


# -----------------------------
# geometry
# -----------------------------


def test_range_to_pixels() -> None:
    assert range_to_pixels((500, 750), (0, 1000), 500) == (250, 125)
    assert range_to_pixels((0, 1000), (0, 1000), 500) == (0, 500)
    assert range_to_pixels((3, 3), (3, 3), 320) == (0, 320)  # docstring: 退化 bounds 覆盖全宽


def test_pixels_to_range_and_drag_in_both_directions() -> None:
    assert pixels_to_range(250, 375, (0, 1000), 500) == (500.0, 750.0)
    assert drag_to_range(375, -125, (0, 1000), 500) == (500.0, 750.0)
    assert drag_to_range(450, 200, (0, 1000), 500) == (900.0, 1000.0)  # docstring: 越界钳制


def test_geometry_rejects_non_positive_width() -> None:
    with pytest.raises(BadRequestError):
        range_to_pixels((0, 1), (0, 1), 0)


def test_snap_keeps_the_edited_bound() -> None:
    assert snap_range((800, 200), edited="max") == (200.0, 200.0)
    assert snap_range((800, 200), edited="min") == (800.0, 800.0)
    assert snap_range((100, 200), edited="min") == (100.0, 200.0)


# -----------------------------
# rounding
# -----------------------------


@pytest.mark.parametrize(
    "value, lo, hi, expected",
    [
        (123.456, 0, 1000, "123"),
        (0.12345, 0, 1, "0.12"),
        (2.5, 0, 10, "2.5"),
        (-0.0001, -1, 1, "0"),
        (500, 0, 500, "500"),
    ],
)
def test_round_value(value: float, lo: float, hi: float, expected: str) -> None:
    text = round_value(value, lo, hi)
    assert text == expected
    assert ":" not in text


def test_decimals_for_degenerate_span_uses_magnitude() -> None:
    assert decimals_for_range(5, 5) == 2
    assert decimals_for_range(0, 0) == 0
