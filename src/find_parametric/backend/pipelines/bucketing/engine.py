# src/find_parametric/backend/pipelines/bucketing/engine.py
"""
[职责] BucketingEngine：将字段原始取值分布划分为 N 个等宽桶（数值/日期 facet 直方图）。
[边界] 区间来自显式参数（用户输入）或匹配值的观测 min/max；max == min 时恰好一个退化桶；
      不因字段分辨率自动减少桶数；缺字段文档不参与计数；区间外的值不计入。
[上游关系] services/parametric_service 与 sync controller 调用（每字段可并发，无共享状态）。
[下游关系] RangeInfo / Bucket 列表返回给 api 或写入 Selection。
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from find_parametric.backend.pipelines.base.context import FacetContext
from find_parametric.backend.schemas.parametric import Bucket, BucketingParams, RangeInfo
from find_parametric.backend.schemas.restrictions import QueryRestrictions


def partition_range(range_min: float, range_max: float, target_bucket_count: int) -> List[Tuple[float, float]]:
    """
    [职责] 计算桶边界：lower_i = min + i * width，upper_i = lower_{i+1}，最后一个 upper 精确等于 max。
    [边界] 确定性计算（相同输入边界完全一致）；min == max 返回单个退化桶。
    """

    if target_bucket_count <= 0:
        raise ValueError("target_bucket_count must be > 0")
    lo, hi = float(range_min), float(range_max)
    if lo > hi:
        raise ValueError("range_min must be <= range_max")
    if lo == hi:
        return [(lo, hi)]

    width = (hi - lo) / target_bucket_count
    lowers = [lo + i * width for i in range(target_bucket_count)]
    uppers = lowers[1:] + [hi]
    return list(zip(lowers, uppers))


def bucket_index(value: float, bounds: Sequence[Tuple[float, float]]) -> Optional[int]:
    """Index of the bucket holding value ([lower, upper), last closed); None when outside."""
    if not bounds:
        return None
    lo, hi = bounds[0][0], bounds[-1][1]
    if value < lo or value > hi:
        return None
    n = len(bounds)
    if lo == hi or value == hi:
        return n - 1
    idx = min(int(math.floor((value - lo) / ((hi - lo) / n))), n - 1)
    while idx > 0 and value < bounds[idx][0]:
        idx -= 1  # docstring: 浮点误差修正
    while idx < n - 1 and value >= bounds[idx][1]:
        idx += 1
    return idx


def count_into_buckets(values: Sequence[float], bounds: Sequence[Tuple[float, float]]) -> List[Bucket]:
    """O(len(values)) counting; values outside the bounds are dropped."""
    counts = [0] * len(bounds)
    for v in values:
        idx = bucket_index(float(v), bounds)
        if idx is not None:
            counts[idx] += 1
    return [Bucket(lower_bound=b[0], upper_bound=b[1], count=c) for b, c in zip(bounds, counts)]


async def compute_range_info(
    ctx: FacetContext,
    field_name: str,
    params: BucketingParams,
    restrictions: QueryRestrictions,
) -> RangeInfo:
    """
    [职责] 拉取字段统计并分桶，返回单字段 RangeInfo。
    [边界] 无匹配值且未给出显式区间时返回空桶列表（min/max 为 None）。
    [上游关系] parametric_service.get_bucketed_values / FacetSyncController.refresh。
    [下游关系] FieldStatisticsEngine.query_field_statistics（带 ctx.timeout_s）。
    """

    with ctx.timing.stage("engine"):
        stats = await ctx.engine.query_field_statistics(restrictions, field_name, timeout=ctx.timeout_s)

    with ctx.timing.stage("bucketing"):
        if params.has_explicit_range:
            bounds_range: Optional[Tuple[float, float]] = (float(params.range_min), float(params.range_max))
        else:
            bounds_range = stats.observed_range

        if bounds_range is None:
            return RangeInfo(
                field_name=field_name,
                kind=stats.kind,
                total_matching=stats.total_matching,
            )

        bounds = partition_range(bounds_range[0], bounds_range[1], params.target_bucket_count)
        buckets = count_into_buckets(stats.values, bounds)
        return RangeInfo(
            field_name=field_name,
            kind=stats.kind,
            min=bounds_range[0],
            max=bounds_range[1],
            bucket_size=(bounds_range[1] - bounds_range[0]) / params.target_bucket_count,
            count=sum(b.count for b in buckets),
            total_matching=stats.total_matching,
            values=buckets,
        )


async def compute_buckets(
    ctx: FacetContext,
    field_name: str,
    params: BucketingParams,
    restrictions: QueryRestrictions,
) -> List[Bucket]:
    """Ordered buckets for one field (see compute_range_info)."""
    info = await compute_range_info(ctx, field_name, params, restrictions)
    return list(info.values)
