# src/find_parametric/backend/pipelines/restriction/codec.py
"""
[职责] QueryRestrictions 的序列化/反序列化（saved snapshot 持久化格式）。
[边界] JSON 文本、key 排序、日期固定毫秒精度（YYYY-MM-DDTHH:MM:SS.mmmZ）；保证 deserialize(serialize(r)) == r。
[上游关系] snapshot_service 保存/恢复快照；sync controller 输出 last-known-good 状态。
[下游关系] db SavedSnapshotModel.restrictions 列。
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError

from find_parametric.backend.schemas.restrictions import QueryRestrictions, normalize_datetime
from find_parametric.backend.utils.errors import InvalidRestrictionError


_DATE_PARSE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_date(value: Optional[datetime]) -> Optional[str]:
    """UTC, millisecond precision, trailing Z."""
    v = normalize_datetime(value)
    if v is None:
        return None
    return (
        f"{v.year:04d}-{v.month:02d}-{v.day:02d}T{v.hour:02d}:{v.minute:02d}:{v.second:02d}."
        f"{v.microsecond // 1000:03d}Z"
    )  # docstring: strftime("%Y") 不补零（year < 1000）


def parse_date(text: Optional[str]) -> Optional[datetime]:
    if text is None:
        return None
    try:
        return datetime.strptime(text, _DATE_PARSE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError as exc:
        raise InvalidRestrictionError(
            message="date bound is not in serialized format",
            detail={"value": text},
            cause=exc,
        ) from exc


def to_payload(restrictions: QueryRestrictions) -> Dict[str, Any]:
    """JSON-safe dict with camelCase keys."""
    return {
        "queryText": restrictions.query_text,
        "fieldText": restrictions.field_text,
        "databases": list(restrictions.databases),
        "minDate": format_date(restrictions.min_date),
        "maxDate": format_date(restrictions.max_date),
        "minScore": restrictions.min_score,
        "stateMatchIds": list(restrictions.state_match_ids),
    }


def serialize(restrictions: QueryRestrictions) -> str:
    return json.dumps(to_payload(restrictions), sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def from_payload(payload: Dict[str, Any]) -> QueryRestrictions:
    if not isinstance(payload, dict):
        raise InvalidRestrictionError(message="serialized restrictions must be an object")
    data = dict(payload)
    for key in ("minDate", "maxDate"):
        if data.get(key) is not None:
            data[key] = parse_date(data[key])
    try:
        return QueryRestrictions.model_validate(data)
    except ValidationError as exc:
        raise InvalidRestrictionError(
            message="serialized restrictions are invalid",
            detail={"errors": [str(e.get("msg", "")) for e in exc.errors()]},
            cause=exc,
        ) from exc


def deserialize(text: str) -> QueryRestrictions:
    """
    [职责] 从 serialize 的输出重建 QueryRestrictions。
    [边界] 非 JSON/字段非法/不变量失败均抛 InvalidRestrictionError。
    """

    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise InvalidRestrictionError(
            message="serialized restrictions are not JSON",
            cause=exc,
        ) from exc
    return from_payload(payload)
