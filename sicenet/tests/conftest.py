# sicenet/tests/conftest.py
from __future__ import annotations

import httpx
import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager

from sicenet.clients.sicenet_client import SicenetClient
from sicenet.core.db import AsyncSessionLocal, get_session
from sicenet.main import app
from sicenet.tests.soap_stub import BASE_URL, MemoryCookieStore


@pytest.fixture
def anyio_backend():
    # @pytest.mark.anyio 的用例只跑 asyncio
    return "asyncio"


@pytest.fixture
def cookie_store() -> MemoryCookieStore:
    return MemoryCookieStore()


async def _override_get_session():
    """
    测试环境专用 DB 依赖：每次依赖调用创建一个新的 AsyncSession
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


@pytest_asyncio.fixture
async def client():
    """
    - 触发 FastAPI lifespan（startup/shutdown）
    - lifespan 建好的 SICENET client 换成内存 cookie 存储的版本，避免测试往磁盘写 cookie
    - 覆盖 get_session，避免多个请求复用同一个 Session
    """
    app.dependency_overrides[get_session] = _override_get_session

    async with LifespanManager(app):
        app.state.sicenet_client = SicenetClient(MemoryCookieStore(), base_url=BASE_URL)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac

    app.dependency_overrides.clear()
