# playground/conftest.py

"""
[职责] playground 共享 fixture：种子 InMemoryEngine、FacetContext、临时 sqlite session、FastAPI app/client。
[边界] 每个测试独立 sqlite 文件；不访问真实搜索引擎；不读取本地 .env 中的 DB 路径。
[上游关系] 各 *_gate 测试模块通过参数名注入。
[下游关系] backend/engine/memory.py、backend/db/engine.py、backend/api/app.py。
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from find_parametric.backend.api.app import create_app
from find_parametric.backend.api.deps import get_session
from find_parametric.backend.db.engine import create_engine, create_sessionmaker, drop_db, init_db
from find_parametric.backend.engine.memory import InMemoryEngine
from find_parametric.backend.pipelines.base.context import FacetContext
from find_parametric.backend.pipelines.sync.labels import ParametricDisplayValues


_PRICES = [0, 100, 250, 400, 500, 600, 750, 1000]
_CATEGORIES = ["news", "news", "sport", "sport", "news", "tech", "tech", "sport", "news"]
_COLOURS = ["red", "blue", "red", "green", "red", "blue", "green", "red", "blue"]
_SUMMARIES = {1: "quarterly market report", 5: "market outlook", 8: "football results"}


def seed_payload() -> Dict[str, Any]:
    """
    9 篇文档：d1..d8 带 PRICE（0..1000），d9 缺 PRICE；weight 90..10 递减（结果顺序 d1..d9）。
    d1-d3、d9 在 books 索引，d4-d8 在 films 索引。
    """
    documents = []
    for i in range(1, 10):
        fields: Dict[str, Any] = {
            "CATEGORY": _CATEGORIES[i - 1],
            "COLOUR": _COLOURS[i - 1],
            "SIZE": i * 10,
            "PUBLISHED": f"2020-{i:02d}-01T00:00:00Z",
        }
        if i <= len(_PRICES):
            fields["PRICE"] = _PRICES[i - 1]
        documents.append(
            {
                "reference": f"d{i}",
                "database": "books" if i in (1, 2, 3, 9) else "films",
                "title": f"Doc {i}",
                "summary": _SUMMARIES.get(i, ""),
                "date": f"2020-{i:02d}-01T00:00:00Z",
                "weight": float(100 - i * 10),
                "fields": fields,
            }
        )
    return {
        "fieldKinds": {"PRICE": "Numeric", "SIZE": "Numeric", "PUBLISHED": "Date"},
        "documents": documents,
    }  # docstring: 种子数据（与各 gate 的期望值一一对应）


@pytest.fixture
def engine() -> InMemoryEngine:
    return InMemoryEngine.from_payload(seed_payload())


@pytest.fixture
def ctx(engine: InMemoryEngine) -> FacetContext:
    return FacetContext(engine=engine, timeout_s=5.0)  # docstring: 独立 timing/trace


@pytest.fixture
def display_values() -> ParametricDisplayValues:
    return ParametricDisplayValues.from_config(
        [
            {
                "name": "COLOUR",
                "displayName": "Colour Of Item",
                "values": [{"name": "red", "displayName": "Red"}],
            }
        ]
    )


@pytest_asyncio.fixture
async def session(tmp_path) -> AsyncIterator[AsyncSession]:
    """Isolated sqlite session with the schema created."""  # docstring: 每个测试一个 DB 文件
    db_engine = create_engine(url=f"sqlite+aiosqlite:///{tmp_path / 'playground.db'}", echo=False)
    await init_db(engine=db_engine)
    SessionLocal = create_sessionmaker(db_engine)
    try:
        async with SessionLocal() as s:
            yield s
    finally:
        await drop_db(engine=db_engine)
        await db_engine.dispose()


@pytest_asyncio.fixture
async def client(engine: InMemoryEngine, session: AsyncSession, display_values: ParametricDisplayValues) -> AsyncIterator[AsyncClient]:
    """ASGI client over create_app with the seeded engine and the test session."""
    app = create_app(engine=engine, display_values=display_values)

    async def _override_session() -> AsyncIterator[AsyncSession]:
        yield session  # docstring: reuse test session

    app.dependency_overrides[get_session] = _override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
