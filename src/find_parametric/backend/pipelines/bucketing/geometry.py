# src/find_parametric/backend/pipelines/bucketing/geometry.py
"""
[职责] 选择矩形与区间之间的线性换算，以及 min/max 文本输入冲突时的回弹（snap）规则。
[边界] 纯函数；像素坐标以图表左缘为 0；结果区间被钳制在 [rangeMin, rangeMax] 内。
[上游关系] FacetSyncController（drag 选择 / 文本输入 / 渲染选择矩形）。
[下游关系] 产出的 (min, max) 进入 RestrictionModel.with_range。
"""

from __future__ import annotations

from typing import Literal, Optional, Tuple

from find_parametric.backend.utils.errors import BadRequestError


Range = Tuple[float, float]
EditedBound = Literal["min", "max"]


def _check_width(chart_width: float) -> None:
    if chart_width <= 0:
        raise BadRequestError(message="chart width must be positive", detail={"chart_width": chart_width})


def clamp(value: float, bounds: Range) -> float:
    return min(max(float(value), bounds[0]), bounds[1])


def pixels_to_value(px: float, bounds: Range, chart_width: float) -> float:
    _check_width(chart_width)
    lo, hi = bounds
    return clamp(lo + (float(px) / chart_width) * (hi - lo), bounds)


def pixels_to_range(start_px: float, end_px: float, bounds: Range, chart_width: float) -> Range:
    """Linear interpolation of a pixel span over bounds; endpoints ordered and clamped."""
    a = pixels_to_value(start_px, bounds, chart_width)
    b = pixels_to_value(end_px, bounds, chart_width)
    return (a, b) if a <= b else (b, a)


def drag_to_range(start_px: float, delta_px: float, bounds: Range, chart_width: float) -> Range:
    """Range covered by a drag that starts at start_px and moves by delta_px (either direction)."""
    return pixels_to_range(start_px, float(start_px) + float(delta_px), bounds, chart_width)


def range_to_pixels(selection: Range, bounds: Range, chart_width: float) -> Tuple[int, int]:
    """
    [职责] 选择区间 -> (x, width) 像素矩形（四舍五入到整数像素）。
    [边界] 退化 bounds（min == max）时矩形覆盖整个图表。
    """

    _check_width(chart_width)
    lo, hi = bounds
    if hi == lo:
        return 0, int(round(chart_width))
    sel_lo, sel_hi = clamp(selection[0], bounds), clamp(selection[1], bounds)
    x = (sel_lo - lo) / (hi - lo) * chart_width
    x_end = (sel_hi - lo) / (hi - lo) * chart_width
    return int(round(x)), int(round(x_end - x))


def snap_range(selection: Range, *, edited: Optional[EditedBound] = "max") -> Range:
    """
    [职责] min > max 时回弹：保留最后编辑的边界，另一侧边界被设为与之相等。
    [边界] 不拒绝输入；min <= max 时原样返回。
    """

    lo, hi = float(selection[0]), float(selection[1])
    if lo <= hi:
        return lo, hi
    if edited == "min":
        return lo, lo  # docstring: 编辑 min 越过 max，max 跟随
    return hi, hi  # docstring: 编辑 max 低于 min，min 跟随
