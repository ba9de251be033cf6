"""集成测试共享 fixture -- 完整 app + echo 执行器"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from airouter.core.store import create_store_group
from airouter.executor import EchoActionExecutor, StaticTokenBalance
from httpx import ASGITransport, AsyncClient


@pytest_asyncio.fixture
async def integration_app(tmp_path: Path, monkeypatch):
    """集成测试用 FastAPI app"""
    db_path = str(tmp_path / "sqlite" / "integration.db")
    monkeypatch.setenv("AIROUTER_DB_PATH", db_path)
    monkeypatch.setenv("AIROUTER_SCHEDULER_ENABLED", "false")
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")

    from airouter.gateway.main import create_app, init_app_state

    app = create_app()
    store_group = await create_store_group(db_path)
    init_app_state(
        app,
        store_group,
        EchoActionExecutor(delay_s=0),
        StaticTokenBalance(default=500),
        timeout_s=5,
    )
    app.state.db_path = db_path

    yield app

    await store_group.conn.close()


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
        headers={"X-Account-Id": "alice"},
    ) as ac:
        yield ac
