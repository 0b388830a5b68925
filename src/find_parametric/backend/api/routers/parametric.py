# src/find_parametric/backend/api/routers/parametric.py

"""
[职责] Parametric Router：restricted values / bucketed values / dependent values 三个读接口。
[边界] 不直接调用 pipelines；不做事务控制；仅进行查询参数映射与错误映射。
[上游关系] 前端 facet 面板与数值/日期 widget 调用。
[下游关系] parametric_service。
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from find_parametric.backend.api.deps import (
    get_display_values,
    get_engine,
    get_restriction_params,
    get_trace_context,
)
from find_parametric.backend.api.errors import to_json_response
from find_parametric.backend.api.schemas_http.parametric import (
    BucketedValuesResponse,
    DependentValuesResponse,
    RestrictedValuesResponse,
)
from find_parametric.backend.engine.base import FieldStatisticsEngine
from find_parametric.backend.pipelines.sync.labels import ParametricDisplayValues
from find_parametric.backend.schemas.audit import TraceContext
from find_parametric.backend.schemas.restrictions import SortParam
from find_parametric.backend.services.parametric_service import (
    build_restrictions,
    get_bucketed_values,
    get_dependent_values,
    get_restricted_values,
)
from find_parametric.backend.utils.constants import (
    BUCKET_MAX_PARAM,
    BUCKET_MIN_PARAM,
    BUCKET_VALUES_PATH,
    DEPENDENT_VALUES_PATH,
    FIELD_NAMES_PARAM,
    PARAMETRIC_VALUES_PATH,
    RESTRICTED_VALUES_PATH,
    TARGET_NUMBER_OF_BUCKETS_PARAM,
    TIMING_MS_KEY,
)
from find_parametric.config import settings


router = APIRouter(prefix=PARAMETRIC_VALUES_PATH, tags=["parametric"])  # docstring: parametric 路由前缀


@router.get(RESTRICTED_VALUES_PATH, response_model=RestrictedValuesResponse)
async def restricted_values(
    field_names: List[str] = Query(..., alias=FIELD_NAMES_PARAM),
    max_values: Optional[int] = Query(None, alias="maxValues", ge=1),
    sort: SortParam = Query(SortParam.DOCUMENT_COUNT),
    params: Dict[str, Any] = Depends(get_restriction_params),
    engine: FieldStatisticsEngine = Depends(get_engine),
    display_values: ParametricDisplayValues = Depends(get_display_values),
    trace_context: TraceContext = Depends(get_trace_context),
) -> RestrictedValuesResponse:
    """各字段在当前 restrictions 下的值计数。"""
    try:
        result = await get_restricted_values(
            engine=engine,
            field_names=field_names,
            restrictions=build_restrictions(**params),
            trace_context=trace_context,
            max_values=max_values,
            sort=sort,
            display_values=display_values,
        )
    except Exception as exc:
        return to_json_response(  # type: ignore[return-value]
            exc,
            trace_id=str(trace_context.trace_id),
            request_id=str(trace_context.request_id),
        )
    return RestrictedValuesResponse(fields=result["fields"], timing_ms=result[TIMING_MS_KEY])


@router.get(BUCKET_VALUES_PATH + "/{field_name:path}", response_model=BucketedValuesResponse)
async def bucketed_values(
    field_name: str,
    target_bucket_count: Optional[int] = Query(
        None, alias=TARGET_NUMBER_OF_BUCKETS_PARAM, ge=1, le=settings.FIND_PARAMETRIC_MAX_BUCKETS
    ),
    bucket_min: Optional[float] = Query(None, alias=BUCKET_MIN_PARAM),
    bucket_max: Optional[float] = Query(None, alias=BUCKET_MAX_PARAM),
    params: Dict[str, Any] = Depends(get_restriction_params),
    engine: FieldStatisticsEngine = Depends(get_engine),
    trace_context: TraceContext = Depends(get_trace_context),
) -> BucketedValuesResponse:
    """
    [职责] 单字段直方图（RangeInfo）。
    [边界] bucketMin/bucketMax 省略时使用匹配文档的观测区间。
    """
    try:
        result = await get_bucketed_values(
            engine=engine,
            field_name=field_name,
            restrictions=build_restrictions(**params),
            trace_context=trace_context,
            target_bucket_count=target_bucket_count,
            bucket_min=bucket_min,
            bucket_max=bucket_max,
        )
    except Exception as exc:
        return to_json_response(  # type: ignore[return-value]
            exc,
            trace_id=str(trace_context.trace_id),
            request_id=str(trace_context.request_id),
        )
    return BucketedValuesResponse(range_info=result["range_info"], timing_ms=result[TIMING_MS_KEY])


@router.get(DEPENDENT_VALUES_PATH, response_model=DependentValuesResponse)
async def dependent_values(
    field_names: List[str] = Query(..., alias=FIELD_NAMES_PARAM),
    max_values: Optional[int] = Query(None, alias="maxValues", ge=1),
    sort: SortParam = Query(SortParam.DOCUMENT_COUNT),
    params: Dict[str, Any] = Depends(get_restriction_params),
    engine: FieldStatisticsEngine = Depends(get_engine),
    display_values: ParametricDisplayValues = Depends(get_display_values),
    trace_context: TraceContext = Depends(get_trace_context),
) -> DependentValuesResponse:
    try:
        result = await get_dependent_values(
            engine=engine,
            field_names=field_names,
            restrictions=build_restrictions(**params),
            trace_context=trace_context,
            max_values=max_values,
            sort=sort,
            display_values=display_values,
        )
    except Exception as exc:
        return to_json_response(  # type: ignore[return-value]
            exc,
            trace_id=str(trace_context.trace_id),
            request_id=str(trace_context.request_id),
        )
    return DependentValuesResponse(
        nodes=result["nodes"],
        engine_calls=result["engine_calls"],
        timing_ms=result[TIMING_MS_KEY],
    )
