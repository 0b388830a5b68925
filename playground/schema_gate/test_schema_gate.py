# playground/schema_gate/test_schema_gate.py

"""
[职责] Schema gate：对 backend/schemas 与错误合同进行综合断言，防止字段漂移、extra 策略漂移、默认值漂移。
[边界] 不触发 DB/engine；不测试 pipelines；只测试 Pydantic schema 与 DomainError 的结构与约束行为。
[上游关系] backend/schemas/{ids,restrictions,parametric,facets,export,audit}、utils/errors、api/schemas_http/_common。
[下游关系] pipelines/services/api 依赖这些合同。
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from find_parametric.backend.api.schemas_http._common import ErrorInfo, ErrorResponse
from find_parametric.backend.schemas.audit import TraceContext
from find_parametric.backend.schemas.export import ExportRequest
from find_parametric.backend.schemas.facets import Selection
from find_parametric.backend.schemas.ids import is_uuid_str, new_uuid
from find_parametric.backend.schemas.parametric import Bucket, BucketingParams, FieldKind
from find_parametric.backend.schemas.restrictions import (
    ParametricRequest,
    PartialRestriction,
    QueryRestrictions,
    SortParam,
)
from find_parametric.backend.utils.constants import LAST_GOOD_KEY
from find_parametric.backend.utils.errors import (
    BadRequestError,
    DomainError,
    EngineTimeoutError,
    EngineUnavailableError,
    InvalidRestrictionError,
    is_valid_error_code,
    to_http_error,
)


pytestmark = pytest.mark.schema_gate


# -----------------------------
# ids.py
# -----------------------------


def test_ids_new_uuid_is_valid_uuid_str() -> None:
    value = new_uuid()
    assert isinstance(value, str)
    assert is_uuid_str(value)
    assert not is_uuid_str("not-a-uuid")


# -----------------------------
# restrictions.py
# -----------------------------


def test_query_restrictions_defaults() -> None:
    r = QueryRestrictions()
    assert r.query_text == "*"
    assert r.field_text == ""
    assert r.databases == ()
    assert r.min_date is None and r.max_date is None
    assert r.min_score == 0
    assert r.state_match_ids == ()


def test_query_restrictions_normalization() -> None:
    """Blank query -> '*', databases as sorted set, dates to UTC millisecond precision."""  # docstring: 规范化
    local = timezone(timedelta(hours=2))
    r = QueryRestrictions(
        query_text="  ",
        databases=["films", "books", "films", ""],
        min_date=datetime(2020, 1, 1, 2, 0, 0, 123456, tzinfo=local),
        max_date=datetime(2020, 6, 1),
        state_match_ids=["s2", "s1"],
    )
    assert r.query_text == "*"
    assert r.databases == ("books", "films")
    assert r.min_date == datetime(2020, 1, 1, 0, 0, 0, 123000, tzinfo=timezone.utc)
    assert r.max_date.tzinfo is not None
    assert r.state_match_ids == ("s2", "s1")  # docstring: 顺序保留


def test_query_restrictions_camel_aliases_and_extra_forbid() -> None:
    r = QueryRestrictions.model_validate({"queryText": "cats", "fieldText": "MATCH{a}:F", "minScore": 5})
    assert (r.query_text, r.field_text, r.min_score) == ("cats", "MATCH{a}:F", 5)
    assert r.model_dump(by_alias=True)["queryText"] == "cats"

    with pytest.raises(ValidationError):
        QueryRestrictions.model_validate({"colour": "red"})


def test_query_restrictions_invariants() -> None:
    with pytest.raises(ValidationError):
        QueryRestrictions(min_score=-1)
    with pytest.raises(ValidationError):
        QueryRestrictions(min_date=datetime(2021, 1, 1), max_date=datetime(2020, 1, 1))


def test_query_restrictions_frozen_and_hashable() -> None:
    r = QueryRestrictions(databases=["b", "a"])
    with pytest.raises(ValidationError):
        r.query_text = "x"  # type: ignore[misc]
    assert hash(r) == hash(QueryRestrictions(databases=["a", "b"]))


def test_partial_restriction_tracks_set_fields() -> None:
    delta = PartialRestriction.model_validate({"fieldText": "MATCH{x}:F"})
    assert delta.model_fields_set == {"field_text"}


def test_parametric_request_contract() -> None:
    req = ParametricRequest(field_names="COLOUR")
    assert req.field_names == ("COLOUR",)
    assert req.sort == SortParam.DOCUMENT_COUNT
    assert req.start == 1
    assert req.max_values is None

    with pytest.raises(ValidationError):
        ParametricRequest(field_names=["A", "A"])
    with pytest.raises(ValidationError):
        ParametricRequest(field_names=[])
    with pytest.raises(ValidationError):
        ParametricRequest(field_names=["A"], start=0)


# -----------------------------
# parametric.py / facets.py / export.py
# -----------------------------


def test_bucketing_params_contract() -> None:
    params = BucketingParams(target_bucket_count=3)
    assert not params.has_explicit_range

    with pytest.raises(ValidationError):
        BucketingParams(target_bucket_count=0)
    with pytest.raises(ValidationError):
        BucketingParams(target_bucket_count=3, range_min=1)
    with pytest.raises(ValidationError):
        BucketingParams(target_bucket_count=3, range_min=5, range_max=1)
    with pytest.raises(ValidationError):
        BucketingParams(target_bucket_count=3, extra_field=1)


def test_selection_state_projection() -> None:
    s = Selection(
        widget_id="PRICE",
        field_name="PRICE",
        kind=FieldKind.NUMERIC,
        bounds=(0.0, 10.0),
        buckets=(Bucket(lower_bound=0, upper_bound=10, count=2),),
    )
    assert not s.is_active
    assert s.display_range == (0.0, 10.0)

    active = s.model_copy(update={"active_range": (2.0, 4.0)})
    assert active.is_active
    assert active.display_range == (2.0, 4.0)

    state = active.to_state()
    assert state["kind"] == "Numeric"
    assert state["active_range"] == [2.0, 4.0]
    assert state["buckets"] == [{"lower_bound": 0.0, "upper_bound": 10.0, "count": 2}]


def test_export_request_contract() -> None:
    req = ExportRequest(total_results=0)
    assert req.selected_fields == []
    assert req.page_size is None
    with pytest.raises(ValidationError):
        ExportRequest(total_results=-1)
    with pytest.raises(ValidationError):
        ExportRequest(total_results=1, page_size=0)


# -----------------------------
# audit.py
# -----------------------------


def test_trace_context_defaults_and_extra_allow() -> None:
    ctx = TraceContext(route="/x")
    assert is_uuid_str(ctx.trace_id)
    assert is_uuid_str(ctx.request_id)
    assert ctx.trace_id != ctx.request_id
    assert ctx.parent_request_id is None
    assert ctx.tags == {}
    assert ctx.model_dump()["route"] == "/x"


# -----------------------------
# errors
# -----------------------------


def test_error_code_conventions() -> None:
    assert is_valid_error_code("bad_request")
    assert is_valid_error_code("ENGINE__TIMEOUT")
    assert is_valid_error_code("engine.timeout")
    assert not is_valid_error_code("")
    assert not is_valid_error_code("Timeout")

    with pytest.raises(ValueError):
        DomainError(error_code="Timeout", message="x")
    with pytest.raises(ValueError):
        DomainError(error_code="bad_request", message="x", detail={"when": datetime(2020, 1, 1)})


def test_domain_error_defaults() -> None:
    err = InvalidRestrictionError(detail={"field": "minDate"})
    assert (err.error_code, err.http_status, err.retryable) == ("RESTRICTION__INVALID", 400, False)

    timeout = EngineTimeoutError()
    assert (timeout.http_status, timeout.retryable) == (504, True)
    assert timeout.last_good is None

    unavailable = EngineUnavailableError()
    assert (unavailable.http_status, unavailable.retryable) == (503, True)


def test_engine_error_with_last_good() -> None:
    cause = RuntimeError("boom")
    err = EngineTimeoutError(detail={"field": "PRICE"}, cause=cause)
    enriched = err.with_last_good({"labels": ["Price: 0 – 5"]})

    assert isinstance(enriched, EngineTimeoutError)
    assert enriched.last_good == {"labels": ["Price: 0 – 5"]}
    assert enriched.detail == {"field": "PRICE", LAST_GOOD_KEY: {"labels": ["Price: 0 – 5"]}}
    assert enriched.cause is cause
    assert err.last_good is None  # docstring: 原错误不被修改


def test_to_http_error_mapping() -> None:
    status, payload = to_http_error(BadRequestError(message="nope", detail={"k": 1}), trace_id="t-1")
    assert status == 400
    assert payload == {
        "error": {"code": "bad_request", "message": "nope", "detail": {"k": 1}, "retryable": False, "trace_id": "t-1"}
    }
    ErrorResponse.model_validate(payload)

    status, payload = to_http_error(KeyError("secret"))
    assert status == 500
    assert payload["error"]["code"] == "internal_error"
    assert "secret" not in payload["error"]["message"]


def test_error_info_extra_forbid() -> None:
    with pytest.raises(ValidationError):
        ErrorInfo(code="bad_request", message="x", trace_id="t", unexpected=1)
    with pytest.raises(ValidationError):
        ErrorInfo(code="", message="x", trace_id="t")
