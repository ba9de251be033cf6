"""packages/core 测试配置 -- 核心层 fixture"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from airouter.core.ledger import EnergyLedger
from airouter.core.store import StoreGroup, create_store_group


class FakeTokenBalance:
    """按账户返回固定 token 余额"""

    def __init__(self, balances: dict[str, int] | None = None) -> None:
        self.balances = dict(balances or {})
        self.calls: list[str] = []

    async def get_stakeable_balance(self, account_id: str) -> int:
        self.calls.append(account_id)
        return self.balances.get(account_id, 0)


@pytest_asyncio.fixture
async def store_group(tmp_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """核心层已初始化的 StoreGroup"""
    group = await create_store_group(str(tmp_path / "sqlite" / "core_test.db"))
    yield group
    await group.conn.close()


@pytest_asyncio.fixture
async def token_balance() -> FakeTokenBalance:
    return FakeTokenBalance({"alice": 500})


@pytest_asyncio.fixture
async def ledger(store_group: StoreGroup, token_balance: FakeTokenBalance) -> EnergyLedger:
    return EnergyLedger(store_group, token_balance)
