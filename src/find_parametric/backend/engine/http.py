# src/find_parametric/backend/engine/http.py
"""
[职责] HttpEngineClient：远端搜索引擎的 httpx 异步适配器（JSON 端点）。
[边界] 仅做请求构造与错误映射：httpx 超时 -> EngineTimeoutError；传输错误/5xx/2xx 响应体无法解析 -> EngineUnavailableError；4xx -> BadRequestError。
[上游关系] app 装配时若配置 FIND_PARAMETRIC_ENGINE_URL 则使用本适配器。
[下游关系] 远端引擎：POST /field-statistics、/tag-values、/documents；GET /health。
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import httpx
from pydantic import ValidationError

from find_parametric.backend.pipelines.restriction.codec import to_payload
from find_parametric.backend.schemas.export import ResultDocument
from find_parametric.backend.schemas.parametric import FieldKind, TagValues
from find_parametric.backend.schemas.restrictions import ParametricRequest, QueryRestrictions
from find_parametric.backend.utils.errors import BadRequestError, EngineTimeoutError, EngineUnavailableError
from find_parametric.backend.utils.logging_ import get_logger, truncate_text
from .base import FieldStatistics, FieldStatisticsEngine


logger = get_logger("engine.http")

T = TypeVar("T")


def _malformed(path: str, exc: Exception) -> EngineUnavailableError:
    return EngineUnavailableError(
        message=f"engine response for {path} is malformed",
        detail={"path": path, "reason": type(exc).__name__},
        cause=exc,
    )


def _parse(path: str, data: Dict[str, Any], build: Callable[[Dict[str, Any]], T]) -> T:
    """Build typed results from a decoded body; shape errors surface as EngineUnavailableError."""
    try:
        return build(data)
    except (ValidationError, ValueError, TypeError, AttributeError) as exc:
        raise _malformed(path, exc) from exc


class HttpEngineClient(FieldStatisticsEngine):
    """远端引擎适配器；client 可注入（测试使用 httpx.MockTransport）。"""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout_s)

    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = await self._client.post(path, json=body)
        except httpx.TimeoutException as exc:
            raise EngineTimeoutError(
                message=f"engine request {path} timed out",
                detail={"path": path},
                cause=exc,
            ) from exc
        except httpx.TransportError as exc:
            raise EngineUnavailableError(
                message=f"engine request {path} failed",
                detail={"path": path, "reason": type(exc).__name__},
                cause=exc,
            ) from exc

        if resp.status_code >= 500:
            raise EngineUnavailableError(
                message=f"engine returned {resp.status_code}",
                detail={"path": path, "status_code": resp.status_code},
            )
        if resp.status_code >= 400:
            raise BadRequestError(
                message=f"engine rejected request ({resp.status_code})",
                detail={"path": path, "status_code": resp.status_code, "body": truncate_text(resp.text)},
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise _malformed(path, exc) from exc  # docstring: 2xx 但非 JSON（如代理错误页）
        if not isinstance(data, dict):
            raise _malformed(path, TypeError(type(data).__name__))
        return data

    async def _query_field_statistics(self, restrictions: QueryRestrictions, field_name: str) -> FieldStatistics:
        data = await self._post(
            "/field-statistics",
            {"restrictions": to_payload(restrictions), "fieldName": field_name},
        )
        return _parse(
            "/field-statistics",
            data,
            lambda d: FieldStatistics(
                field_name=d.get("fieldName", field_name),
                kind=FieldKind(d.get("kind", FieldKind.NUMERIC.value)),
                values=tuple(float(v) for v in d.get("values", [])),
                total_matching=int(d.get("totalMatching", 0)),
            ),
        )

    async def _query_tag_values(self, request: ParametricRequest) -> List[TagValues]:
        data = await self._post(
            "/tag-values",
            {
                "fieldNames": list(request.field_names),
                "restrictions": to_payload(request.restrictions),
                "maxValues": request.max_values,
                "sort": request.sort.value,
                "start": request.start,
            },
        )
        return _parse("/tag-values", data, lambda d: [TagValues.model_validate(item) for item in d.get("fields", [])])

    async def _query_documents(
        self,
        restrictions: QueryRestrictions,
        *,
        start: int,
        max_results: int,
        fields: Sequence[str],
    ) -> List[ResultDocument]:
        data = await self._post(
            "/documents",
            {
                "restrictions": to_payload(restrictions),
                "start": start,
                "maxResults": max_results,
                "fields": list(fields),
            },
        )
        return _parse(
            "/documents", data, lambda d: [ResultDocument.model_validate(item) for item in d.get("documents", [])]
        )

    async def ping(self) -> bool:
        try:
            resp = await self._client.get("/health")
        except httpx.HTTPError as exc:
            logger.warning("engine ping failed: %s", type(exc).__name__)
            return False
        return resp.status_code < 400

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
