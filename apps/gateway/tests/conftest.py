"""apps/gateway 测试配置 -- FastAPI app + 可控 Action Executor"""

import asyncio
from collections.abc import AsyncGenerator
from datetime import timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from airouter.core.ledger import EnergyLedger
from airouter.core.models import EnergySource, ScheduledTask
from airouter.core.schedule import utcnow
from airouter.core.store import StoreGroup, create_store_group
from airouter.executor import ActionResult, ExecutorFailureError, StaticTokenBalance
from airouter.gateway.services.scheduler import ExecutionLoop
from httpx import ASGITransport, AsyncClient
from ulid import ULID

# 测试用执行超时（秒）
TEST_TIMEOUT_S = 0.2


class FakeExecutor:
    """可控的 Action Executor

    failing 中的 agent 抛出 ExecutorFailureError，slow 中的 agent 超过测试超时。
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.failing: set[str] = set()
        self.slow: set[str] = set()
        self.healthy = True

    async def execute(self, agent_id: str, payload: str) -> ActionResult:
        self.calls.append((agent_id, payload))
        if agent_id in self.slow:
            await asyncio.sleep(TEST_TIMEOUT_S * 10)
        if agent_id in self.failing:
            raise ExecutorFailureError(f"agent {agent_id} crashed")
        return ActionResult(output=f"done: {payload}")

    async def health_check(self) -> bool:
        return self.healthy


def _build_task(owner_id: str = "alice", **overrides) -> ScheduledTask:
    """构造一个已到期的一次性任务"""
    now = utcnow()
    fields = {
        "task_id": str(ULID()),
        "owner_id": owner_id,
        "agent_id": "agent-1",
        "name": "price check",
        "input": "check SOL price",
        "next_execution_time": now - timedelta(minutes=1),
        "energy_cost": 10,
        "created_at": now,
        "updated_at": now,
    }
    fields.update(overrides)
    return ScheduledTask(**fields)


@pytest.fixture
def task_factory(store_group: StoreGroup):
    """直接写入 Task Store 的任务工厂：await task_factory(**fields)"""

    async def _create(owner_id: str = "alice", **overrides) -> ScheduledTask:
        task = _build_task(owner_id, **overrides)
        async with store_group.transaction():
            await store_group.task_store.create_task(task)
        return task

    return _create


@pytest.fixture
def gateway_env(tmp_path: Path, monkeypatch) -> Path:
    """测试环境变量：临时数据库，关闭周期任务与 Logfire"""
    db_path = tmp_path / "sqlite" / "gateway.db"
    monkeypatch.setenv("AIROUTER_DB_PATH", str(db_path))
    monkeypatch.setenv("AIROUTER_SCHEDULER_ENABLED", "false")
    monkeypatch.setenv("AIROUTER_EXECUTOR_MODE", "echo")
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")
    return db_path


@pytest_asyncio.fixture
async def store_group(gateway_env: Path) -> AsyncGenerator[StoreGroup, None]:
    group = await create_store_group(str(gateway_env))
    yield group
    await group.conn.close()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def token_balance() -> StaticTokenBalance:
    return StaticTokenBalance(default=0, balances={"alice": 1000})


@pytest_asyncio.fixture
async def ledger(store_group: StoreGroup, token_balance: StaticTokenBalance) -> EnergyLedger:
    return EnergyLedger(store_group, token_balance)


@pytest_asyncio.fixture
async def execution_loop(
    store_group: StoreGroup,
    ledger: EnergyLedger,
    executor: FakeExecutor,
) -> ExecutionLoop:
    return ExecutionLoop(store_group, ledger, executor, timeout_s=TEST_TIMEOUT_S)


@pytest_asyncio.fixture
async def funded(ledger: EnergyLedger) -> EnergyLedger:
    """alice 初始 100 能量"""
    await ledger.credit("alice", 100, EnergySource.PURCHASE)
    return ledger


@pytest_asyncio.fixture
async def app(
    gateway_env: Path,
    store_group: StoreGroup,
    executor: FakeExecutor,
    token_balance: StaticTokenBalance,
):
    """创建测试用 FastAPI app，手动初始化 lifespan 状态"""
    from airouter.gateway.main import create_app, init_app_state

    application = create_app()
    init_app_state(application, store_group, executor, token_balance, TEST_TIMEOUT_S)
    yield application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient，默认以 alice 身份请求"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Account-Id": "alice"},
    ) as ac:
        yield ac
