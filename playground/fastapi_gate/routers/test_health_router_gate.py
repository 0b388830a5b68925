# playground/fastapi_gate/routers/test_health_router_gate.py

"""
[职责] Health router gate：验证 /health 输出 DB 与 engine 状态。
[边界] 使用测试 sqlite session 与种子 InMemoryEngine；另以失败 ping 的 stub 验证 degraded。
[上游关系] backend/api/routers/health.py。
[下游关系] 部署探活依赖此结构。
"""

from __future__ import annotations

from typing import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from find_parametric.backend.api.app import create_app
from find_parametric.backend.api.deps import get_session
from find_parametric.backend.engine.memory import InMemoryEngine


pytestmark = pytest.mark.fastapi_gate


class _DownEngine(InMemoryEngine):
    async def ping(self) -> bool:
        return False  # docstring: 模拟引擎不可达


@pytest.mark.asyncio
async def test_health_router_gate(client: AsyncClient) -> None:
    """Health reports ok when DB and engine respond."""  # docstring: 探活
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["db"]["ok"] is True
    assert body["engine"] == {"ok": True, "type": "InMemoryEngine"}
    assert body["version"] == {"api": "v1"}


@pytest.mark.asyncio
async def test_health_router_degraded(session: AsyncSession) -> None:
    app = create_app(engine=_DownEngine([]))

    async def _override_session() -> AsyncIterator[AsyncSession]:
        yield session  # docstring: reuse test session

    app.dependency_overrides[get_session] = _override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "degraded"
    assert resp.json()["engine"]["ok"] is False
