"""gateway 测试配置 -- 手动装配 ServiceGroup（绕过 lifespan）+ httpx AsyncClient"""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tasklog.core.config import BackendConfig
from tasklog.gateway.main import create_app
from tasklog.gateway.services import ServiceGroup


@pytest_asyncio.fixture
async def test_app(sqlite_backend, clock):
    """本地后端 app，时钟可控"""
    app = create_app()
    config = BackendConfig(db_path="unused.db")
    app.state.services = ServiceGroup(sqlite_backend, config, clock)
    yield app


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def remote_app(remote_backend, fake_postgrest, clock):
    """远程后端 app：身份来自 bearer token"""
    fake_postgrest.users["token-alice"] = "alice"
    fake_postgrest.users["token-bob"] = "bob"
    app = create_app()
    config = BackendConfig(
        backend="remote", db_path="unused.db", remote_url="http://remote.test"
    )
    app.state.services = ServiceGroup(remote_backend, config, clock)
    yield app


@pytest_asyncio.fixture
async def remote_client(remote_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=remote_app),
        base_url="http://test",
    ) as ac:
        yield ac
