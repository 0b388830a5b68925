# src/find_parametric/backend/pipelines/values/restricted.py
"""
[职责] restricted values：在当前 restrictions 下获取多个字段的值计数，并补充显示名。
[边界] 不做自排除（由 dependent resolver 负责）；排序与截断由 engine 按 ParametricRequest 执行。
[上游关系] parametric_service.get_restricted_values / ParametricPaginator。
[下游关系] FieldStatisticsEngine.query_tag_values。
"""

from __future__ import annotations

from typing import List, Optional

from find_parametric.backend.pipelines.base.context import FacetContext
from find_parametric.backend.pipelines.sync.labels import ParametricDisplayValues
from find_parametric.backend.schemas.parametric import TagValues
from find_parametric.backend.schemas.restrictions import ParametricRequest


async def fetch_restricted_values(
    ctx: FacetContext,
    request: ParametricRequest,
    *,
    display_values: Optional[ParametricDisplayValues] = None,
) -> List[TagValues]:
    """Value counts per requested field, in request.field_names order."""
    display = display_values or ParametricDisplayValues()
    with ctx.timing.stage("engine"):
        fields = await ctx.engine.query_tag_values(request, timeout=ctx.timeout_s)

    by_name = {f.field_name: f for f in fields}
    out: List[TagValues] = []
    for name in request.field_names:
        found = by_name.get(name)
        if found is None:
            found = TagValues(field_name=name, display_name=name)  # docstring: 引擎未返回的字段视为无值
        out.append(
            found.model_copy(
                update={
                    "display_name": display.field_display_name(name),
                    "values": [
                        v.model_copy(update={"display_value": display.value_display(name, v.value, v.display_value)})
                        for v in found.values
                    ],
                }
            )
        )
    return out
