# src/find_parametric/backend/services/parametric_service.py

"""
[职责] parametric_service：编排 restricted values / bucketed values / dependent values 三个读接口。
[边界] 不暴露 HTTP 语义；不持有跨请求状态；校验错误转换为 InvalidRestrictionError / BadRequestError。
[上游关系] api/routers/parametric.py 调用；依赖 engine 与 TraceContext 注入。
[下游关系] pipelines/values（restricted, dependent）、pipelines/bucketing（compute_range_info）。
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from pydantic import ValidationError

from find_parametric.backend.engine.base import FieldStatisticsEngine
from find_parametric.backend.pipelines.base.context import FacetContext
from find_parametric.backend.pipelines.bucketing.engine import compute_range_info
from find_parametric.backend.pipelines.restriction.fieldtext import parse_field_text
from find_parametric.backend.pipelines.sync.labels import ParametricDisplayValues
from find_parametric.backend.pipelines.values.dependent import DependentValuesResolver
from find_parametric.backend.pipelines.values.restricted import fetch_restricted_values
from find_parametric.backend.schemas.audit import TraceContext
from find_parametric.backend.schemas.parametric import BucketingParams
from find_parametric.backend.schemas.restrictions import ParametricRequest, QueryRestrictions, SortParam
from find_parametric.backend.utils.constants import (
    DEFAULT_FIELD_TEXT,
    DEFAULT_MIN_SCORE,
    DEFAULT_QUERY_TEXT,
    REQUEST_ID_KEY,
    TIMING_MS_KEY,
    TRACE_ID_KEY,
)
from find_parametric.backend.utils.errors import BadRequestError, DomainError, InvalidRestrictionError
from find_parametric.backend.utils.logging_ import get_logger, hash_text, log_event
from find_parametric.config import settings


logger = get_logger("services.parametric")


def _validation_detail(exc: ValidationError) -> Dict[str, Any]:
    return {"errors": [{"loc": [str(p) for p in e["loc"]], "msg": e["msg"]} for e in exc.errors()]}


def build_restrictions(
    *,
    query_text: Optional[str] = DEFAULT_QUERY_TEXT,
    field_text: Optional[str] = DEFAULT_FIELD_TEXT,
    databases: Sequence[str] = (),
    min_date: Optional[datetime] = None,
    max_date: Optional[datetime] = None,
    min_score: int = DEFAULT_MIN_SCORE,
    state_tokens: Sequence[str] = (),
) -> QueryRestrictions:
    """
    [职责] HTTP 参数 -> QueryRestrictions（含 fieldText 语法校验）。
    [边界] 不补全 databases；不发起引擎调用。
    """

    try:
        restrictions = QueryRestrictions(
            query_text=query_text,
            field_text=field_text,
            databases=tuple(databases),
            min_date=min_date,
            max_date=max_date,
            min_score=min_score,
            state_match_ids=tuple(state_tokens),
        )
    except ValidationError as exc:
        raise InvalidRestrictionError(message="invalid query restrictions", detail=_validation_detail(exc)) from exc
    parse_field_text(restrictions.field_text)  # docstring: 语法错误抛 InvalidRestrictionError
    return restrictions


def _context(engine: FieldStatisticsEngine, trace_context: TraceContext) -> FacetContext:
    return FacetContext.for_request(
        engine,
        trace_id=str(trace_context.trace_id),
        request_id=str(trace_context.request_id),
    )


def _result(ctx: FacetContext, **payload: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = dict(payload)
    out[TRACE_ID_KEY] = ctx.trace_id
    out[REQUEST_ID_KEY] = ctx.request_id
    out[TIMING_MS_KEY] = ctx.timing_ms()
    return out


def _log_failure(ctx: FacetContext, message: str, exc: Exception, fields: Dict[str, Any]) -> None:
    code = exc.error_code if isinstance(exc, DomainError) else type(exc).__name__
    log_event(logger, logging.WARNING, message, context=ctx, fields={**fields, "error_code": code})


async def get_restricted_values(
    *,
    engine: FieldStatisticsEngine,
    field_names: Sequence[str],
    restrictions: QueryRestrictions,
    trace_context: TraceContext,
    max_values: Optional[int] = None,
    sort: SortParam = SortParam.DOCUMENT_COUNT,
    display_values: Optional[ParametricDisplayValues] = None,
) -> Dict[str, Any]:
    """restricted-values：当前 restrictions 下各字段的值计数。"""

    ctx = _context(engine, trace_context)
    try:
        request = ParametricRequest(
            field_names=tuple(field_names),
            restrictions=restrictions,
            max_values=max_values,
            sort=sort,
        )
    except ValidationError as exc:
        raise BadRequestError(message="invalid parametric request", detail=_validation_detail(exc)) from exc

    fields = {"field_names": list(request.field_names), "query_hash": hash_text(restrictions.query_text)}
    log_event(logger, logging.INFO, "parametric.restricted.start", context=ctx, fields=fields)
    try:
        values = await fetch_restricted_values(ctx, request, display_values=display_values)
    except Exception as exc:
        _log_failure(ctx, "parametric.restricted.failed", exc, fields)
        raise
    log_event(
        logger,
        logging.INFO,
        "parametric.restricted.done",
        context=ctx,
        fields={**fields, "value_count": sum(len(v.values) for v in values)},
    )
    return _result(ctx, fields=values)


async def get_bucketed_values(
    *,
    engine: FieldStatisticsEngine,
    field_name: str,
    restrictions: QueryRestrictions,
    trace_context: TraceContext,
    target_bucket_count: Optional[int] = None,
    bucket_min: Optional[float] = None,
    bucket_max: Optional[float] = None,
) -> Dict[str, Any]:
    """
    [职责] bucketed-values：单字段 RangeInfo；未给出 bucketMin/bucketMax 时使用观测到的区间。
    [边界] bucketMin/bucketMax 必须同时给出。
    """

    ctx = _context(engine, trace_context)
    try:
        params = BucketingParams(
            target_bucket_count=int(target_bucket_count or settings.FIND_PARAMETRIC_DEFAULT_BUCKETS),
            range_min=bucket_min,
            range_max=bucket_max,
        )
    except ValidationError as exc:
        raise BadRequestError(message="invalid bucketing parameters", detail=_validation_detail(exc)) from exc

    fields = {"field_name": field_name, "target_bucket_count": params.target_bucket_count}
    log_event(logger, logging.INFO, "parametric.buckets.start", context=ctx, fields=fields)
    try:
        info = await compute_range_info(ctx, field_name, params, restrictions)
    except Exception as exc:
        _log_failure(ctx, "parametric.buckets.failed", exc, fields)
        raise
    log_event(
        logger,
        logging.INFO,
        "parametric.buckets.done",
        context=ctx,
        fields={**fields, "bucket_count": len(info.values), "count": info.count},
    )
    return _result(ctx, range_info=info)


async def get_dependent_values(
    *,
    engine: FieldStatisticsEngine,
    field_names: Sequence[str],
    restrictions: QueryRestrictions,
    trace_context: TraceContext,
    max_values: Optional[int] = None,
    sort: SortParam = SortParam.DOCUMENT_COUNT,
    display_values: Optional[ParametricDisplayValues] = None,
) -> Dict[str, Any]:
    """dependent-values：按 fieldNames 顺序递归的值树。"""

    ctx = _context(engine, trace_context)
    resolver = DependentValuesResolver(ctx, max_values=max_values, sort=sort, display_values=display_values)
    fields = {"field_names": list(field_names), "query_hash": hash_text(restrictions.query_text)}
    log_event(logger, logging.INFO, "parametric.dependent.start", context=ctx, fields=fields)
    try:
        nodes = await resolver.resolve(field_names, restrictions)
    except Exception as exc:
        _log_failure(ctx, "parametric.dependent.failed", exc, fields)
        raise
    log_event(
        logger,
        logging.INFO,
        "parametric.dependent.done",
        context=ctx,
        fields={**fields, "engine_calls": resolver.engine_calls},
    )
    return _result(ctx, nodes=nodes, engine_calls=resolver.engine_calls)
