# playground/fastapi_gate/routers/test_snapshot_router_gate.py

"""
[职责] Saved snapshot router gate：创建/列出/读取/恢复/删除快照的 HTTP 映射与摘要行。
[边界] 使用测试 sqlite session（dependency override）与种子 InMemoryEngine。
[上游关系] backend/api/routers/snapshots.py、services/snapshot_service.py。
[下游关系] 前端“保存搜索”与 Query Restrictions 面板依赖此结构。
"""

from __future__ import annotations

from typing import Any, Dict

import pytest
from httpx import AsyncClient

from find_parametric.backend.pipelines.restriction.codec import deserialize


pytestmark = pytest.mark.fastapi_gate

BASE = "/api/bi/saved-snapshot"


def _create_body() -> Dict[str, Any]:
    return {
        "title": "books news under 500",
        "restrictions": {
            "databases": ["books"],
            "fieldText": "MATCH{news}:CATEGORY AND NRANGE{0,500}:PRICE",
            "minDate": "2020-01-01T00:00:00Z",
        },
        "relatedConcepts": ["market"],
        "resultCount": 3,
    }


@pytest.mark.asyncio
async def test_snapshot_crud_and_restore(client: AsyncClient) -> None:
    """Create -> list -> read -> restore -> delete."""  # docstring: 全流程
    created = await client.post(BASE, json=_create_body())
    assert created.status_code == 201, created.text
    body = created.json()

    snapshot_id = body["id"]
    assert body["parametric_values"] == {"CATEGORY": ["news"]}
    assert body["parametric_ranges"] == [{"field_name": "PRICE", "kind": "Numeric", "min": 0.0, "max": 500.0}]
    assert deserialize(body["restrictions"]).databases == ("books",)
    assert [(row["title"], row["content"]) for row in body["summary"]] == [
        ("Related Concepts", "market"),
        ("Indexes", "books"),
        ("Min Date", "2020/01/01 00:00"),
        ("Category", "news"),
        ("Price", "0 – 500"),
    ]
    assert body["labels"] is None

    listed = await client.get(BASE)
    assert listed.status_code == 200
    assert listed.json()["total"] == 1
    assert [item["id"] for item in listed.json()["items"]] == [snapshot_id]

    read = await client.get(f"{BASE}/{snapshot_id}")
    assert read.status_code == 200
    assert read.json()["restrictions"] == body["restrictions"]

    restored = await client.get(f"{BASE}/{snapshot_id}", params={"restore": "true"})
    assert restored.status_code == 200, restored.text
    assert restored.json()["labels"] == ["Price: 0 – 500"]

    deleted = await client.delete(f"{BASE}/{snapshot_id}")
    assert deleted.status_code == 204

    again = await client.delete(f"{BASE}/{snapshot_id}")
    assert again.status_code == 404
    assert again.json()["error"]["code"] == "not_found"


@pytest.mark.asyncio
async def test_snapshot_missing_is_not_found(client: AsyncClient) -> None:
    resp = await client.get(f"{BASE}/00000000-0000-0000-0000-000000000000")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


@pytest.mark.asyncio
async def test_snapshot_rejects_invalid_restrictions(client: AsyncClient) -> None:
    body = _create_body()
    body["restrictions"]["fieldText"] = "NRANGE{9,1}:PRICE"
    resp = await client.post(BASE, json=body)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "RESTRICTION__INVALID"

    listed = await client.get(BASE)
    assert listed.json()["total"] == 0
