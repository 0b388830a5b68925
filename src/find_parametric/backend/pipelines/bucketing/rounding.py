# src/find_parametric/backend/pipelines/bucketing/rounding.py
"""
[职责] 数值区间标签取整：按区间跨度决定有效数字，避免浮点噪声；整数不带小数点。
[边界] 仅用于显示（标签/快照摘要）；不影响 restrictions 中的精确边界。
[上游关系] sync/labels.py、services/snapshot_service.py 调用。
[下游关系] filter label 文本与 Query Restrictions 面板行。
"""

from __future__ import annotations

import math

from find_parametric.backend.utils.constants import DEFAULT_SIGNIFICANT_FIGURES


def decimals_for_range(range_min: float, range_max: float, *, significant_figures: int = DEFAULT_SIGNIFICANT_FIGURES) -> int:
    """Decimal places that keep `significant_figures` digits of the range span."""
    span = abs(float(range_max) - float(range_min))
    if span == 0:
        span = abs(float(range_min))
    if span == 0 or not math.isfinite(span):
        return 0
    return max(0, significant_figures - 1 - int(math.floor(math.log10(span))))


def round_value(value: float, range_min: float, range_max: float, *, significant_figures: int = DEFAULT_SIGNIFICANT_FIGURES) -> str:
    """
    [职责] 将单个边界按所在区间的精度格式化为文本。
    [边界] 结果不含 ":"（与日期标签区分）；负零显示为 0。
    """

    decimals = decimals_for_range(range_min, range_max, significant_figures=significant_figures)
    rounded = round(float(value), decimals)
    if rounded == 0:
        rounded = 0.0
    if float(rounded).is_integer():
        return str(int(rounded))
    return f"{rounded:.{decimals}f}".rstrip("0").rstrip(".")
