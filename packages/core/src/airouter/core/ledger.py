"""Energy Ledger -- 账户能量余额、质押与流水

并发约束：
- 同一账户的读-改-写通过账户级 asyncio.Lock 串行化
- 扣减在存储层使用条件 UPDATE，余额永不为负
- 每次余额变动与一条流水在同一事务内提交，流水可回放出当前余额
"""

import asyncio
import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Protocol

import structlog
from ulid import ULID

from .config import (
    ENERGY_PER_TOKEN,
    STAKE_BONUS_RATE,
    STAKING_REWARD_RATE,
    TRANSACTION_HISTORY_LIMIT,
)
from .exceptions import (
    AIRouterError,
    InsufficientEnergyError,
    InsufficientStakeError,
    InsufficientTokenBalanceError,
    InvalidAmountError,
)
from .models.energy import EnergyAccount, EnergyTransaction, LedgerReplay, StakeResult
from .models.enums import EnergySource, TransactionType
from .replay import replay_transactions
from .schedule import utcnow
from .store import StoreGroup

log = structlog.get_logger()


class TokenBalanceChecker(Protocol):
    """账户可质押 token 余额查询（外部协作方）"""

    async def get_stakeable_balance(self, account_id: str) -> int: ...


def _check_amount(amount: Any) -> int:
    # bool 是 int 的子类，需单独排除
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount)
    return amount


class EnergyLedger:
    """能量账本"""

    def __init__(
        self,
        store_group: StoreGroup,
        token_balance: TokenBalanceChecker | None = None,
        *,
        bonus_rate: int = STAKE_BONUS_RATE,
        reward_rate: float = STAKING_REWARD_RATE,
        energy_per_token: int = ENERGY_PER_TOKEN,
    ) -> None:
        self._stores = store_group
        self._token_balance = token_balance
        self.bonus_rate = bonus_rate
        self.reward_rate = reward_rate
        self.energy_per_token = energy_per_token
        self._account_locks: dict[str, asyncio.Lock] = {}
        self._account_lock_users: dict[str, int] = {}
        self._account_locks_guard = asyncio.Lock()

    @asynccontextmanager
    async def _account_lock(self, account_id: str) -> AsyncIterator[None]:
        """持有账户级别锁，序列化同一账户的余额读-改-写。

        最后一个使用者释放后从字典中移除，避免账户数无限增长。
        """
        async with self._account_locks_guard:
            lock = self._account_locks.get(account_id)
            if lock is None:
                lock = asyncio.Lock()
                self._account_locks[account_id] = lock
            self._account_lock_users[account_id] = (
                self._account_lock_users.get(account_id, 0) + 1
            )
        try:
            async with lock:
                yield
        finally:
            self._release_account_lock(account_id)

    def _release_account_lock(self, account_id: str) -> None:
        users = self._account_lock_users.get(account_id, 1) - 1
        if users > 0:
            self._account_lock_users[account_id] = users
            return
        self._account_lock_users.pop(account_id, None)
        lock = self._account_locks.get(account_id)
        if lock is not None and not lock.locked():
            self._account_locks.pop(account_id, None)

    async def get_balance(self, account_id: str) -> int:
        """查询余额，账户不存在时返回 0（不创建账户）"""
        return await self._stores.energy_store.get_balance(account_id)

    async def get_account(self, account_id: str) -> EnergyAccount | None:
        return await self._stores.energy_store.get_account(account_id)

    async def credit(
        self,
        account_id: str,
        amount: int,
        source: EnergySource | str,
        *,
        details: dict[str, Any] | None = None,
        reference_id: str | None = None,
    ) -> int:
        """增加能量，账户不存在时自动创建

        Returns:
            变动后余额

        Raises:
            InvalidAmountError: amount 不是正整数
        """
        amount = _check_amount(amount)
        source = EnergySource(source)
        async with self._account_lock(account_id):
            async with self._stores.transaction():
                balance = await self._credit_in_tx(
                    account_id, amount, source, details, reference_id
                )
        log.info(
            "energy_credited",
            account_id=account_id,
            amount=amount,
            source=source.value,
            balance_after=balance,
        )
        return balance

    async def debit(
        self,
        account_id: str,
        amount: int,
        source: EnergySource | str,
        *,
        details: dict[str, Any] | None = None,
        reference_id: str | None = None,
    ) -> int:
        """扣减能量

        Returns:
            变动后余额

        Raises:
            InvalidAmountError: amount 不是正整数
            InsufficientEnergyError: 账户不存在或余额不足
        """
        amount = _check_amount(amount)
        source = EnergySource(source)
        async with self._account_lock(account_id):
            async with self._stores.transaction():
                energy_store = self._stores.energy_store
                now = utcnow()
                balance = await energy_store.try_subtract_balance(account_id, amount, now)
                if balance is None:
                    current = await energy_store.get_balance(account_id)
                    raise InsufficientEnergyError(account_id, amount, current)
                await energy_store.append_transaction(
                    EnergyTransaction(
                        transaction_id=str(ULID()),
                        account_id=account_id,
                        type=TransactionType.DEBIT,
                        amount=amount,
                        source=source,
                        balance_after=balance,
                        details=details,
                        reference_id=reference_id,
                        created_at=now,
                    )
                )
        log.info(
            "energy_debited",
            account_id=account_id,
            amount=amount,
            source=source.value,
            balance_after=balance,
        )
        return balance

    async def stake(self, account_id: str, amount: int) -> StakeResult:
        """质押 token，质押量增加并一次性奖励 amount x bonus_rate 能量

        Raises:
            InvalidAmountError: amount 不是正整数
            InsufficientTokenBalanceError: 外部 token 余额不足
        """
        amount = _check_amount(amount)
        if self._token_balance is None:
            raise AIRouterError("token balance check is not configured", recoverable=False)

        async with self._account_lock(account_id):
            available = await self._token_balance.get_stakeable_balance(account_id)
            if available < amount:
                raise InsufficientTokenBalanceError(account_id, amount, available)

            bonus = amount * self.bonus_rate
            async with self._stores.transaction():
                energy_store = self._stores.energy_store
                await energy_store.ensure_account(account_id, utcnow())
                staked = await energy_store.add_staked(account_id, amount, utcnow())
                if bonus > 0:
                    balance = await self._credit_in_tx(
                        account_id,
                        bonus,
                        EnergySource.STAKE_BONUS,
                        {"staked_amount": amount},
                        None,
                    )
                else:
                    balance = await energy_store.get_balance(account_id)

        log.info(
            "energy_staked",
            account_id=account_id,
            amount=amount,
            bonus=bonus,
            staked=staked,
            balance_after=balance,
        )
        return StakeResult(balance=balance, staked=staked)

    async def purchase(self, account_id: str, token_amount: int) -> int:
        """用 token 兑换能量，按 energy_per_token 折算后入账（source=purchase）

        token 的实际扣除由外部 token 服务负责，这里只校验余额。

        Returns:
            变动后余额

        Raises:
            InvalidAmountError: token_amount 不是正整数
            InsufficientTokenBalanceError: 外部 token 余额不足（状态不变）
        """
        token_amount = _check_amount(token_amount)
        if self._token_balance is None:
            raise AIRouterError("token balance check is not configured", recoverable=False)

        energy = token_amount * self.energy_per_token
        async with self._account_lock(account_id):
            available = await self._token_balance.get_stakeable_balance(account_id)
            if available < token_amount:
                raise InsufficientTokenBalanceError(account_id, token_amount, available)

            async with self._stores.transaction():
                balance = await self._credit_in_tx(
                    account_id,
                    energy,
                    EnergySource.PURCHASE,
                    {"token_amount": token_amount, "rate": self.energy_per_token},
                    None,
                )

        log.info(
            "energy_purchased",
            account_id=account_id,
            token_amount=token_amount,
            amount=energy,
            balance_after=balance,
        )
        return balance

    async def unstake(self, account_id: str, amount: int) -> int:
        """解除质押，返回剩余质押量

        Raises:
            InvalidAmountError: amount 不是正整数
            InsufficientStakeError: 已质押量小于 amount（状态不变）
        """
        amount = _check_amount(amount)
        async with self._account_lock(account_id):
            async with self._stores.transaction():
                energy_store = self._stores.energy_store
                staked = await energy_store.try_subtract_staked(account_id, amount, utcnow())
                if staked is None:
                    account = await energy_store.get_account(account_id)
                    current = account.staked if account else 0
                    raise InsufficientStakeError(account_id, amount, current)

        log.info("energy_unstaked", account_id=account_id, amount=amount, staked=staked)
        return staked

    async def apply_recurring_rewards(self, now: datetime | None = None) -> int:
        """为所有 staked > 0 的账户发放 floor(staked x reward_rate) 能量

        调用方负责保证每个周期最多调用一次。单个账户失败只记录日志。

        Returns:
            实际发放奖励的账户数
        """
        now = now or utcnow()
        accounts = await self._stores.energy_store.list_staked_accounts()
        rewarded = 0
        for account in accounts:
            reward = math.floor(account.staked * self.reward_rate)
            if reward <= 0:
                continue
            try:
                async with self._account_lock(account.account_id):
                    async with self._stores.transaction():
                        await self._credit_in_tx(
                            account.account_id,
                            reward,
                            EnergySource.STAKING_REWARD,
                            {"staked": account.staked, "rate": self.reward_rate},
                            None,
                        )
                        await self._stores.energy_store.mark_staking_reward(
                            account.account_id, now
                        )
                rewarded += 1
            except Exception as e:
                log.error(
                    "staking_reward_failed",
                    account_id=account.account_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        log.info(
            "staking_rewards_applied",
            candidates=len(accounts),
            rewarded=rewarded,
        )
        return rewarded

    async def transaction_history(
        self,
        account_id: str,
        limit: int = TRANSACTION_HISTORY_LIMIT,
        offset: int = 0,
    ) -> list[EnergyTransaction]:
        """流水分页查询，最新的在前"""
        return await self._stores.energy_store.list_transactions(
            account_id, limit=max(limit, 0), offset=max(offset, 0)
        )

    async def verify(self, account_id: str) -> LedgerReplay:
        """回放流水并与当前余额比对"""
        transactions = await self._stores.energy_store.get_all_transactions(account_id)
        stored = await self.get_balance(account_id)
        return replay_transactions(account_id, stored, transactions)

    async def _credit_in_tx(
        self,
        account_id: str,
        amount: int,
        source: EnergySource,
        details: dict[str, Any] | None,
        reference_id: str | None,
    ) -> int:
        """事务内：确保账户存在 + 增加余额 + 追加流水"""
        energy_store = self._stores.energy_store
        now = utcnow()
        await energy_store.ensure_account(account_id, now)
        balance = await energy_store.add_balance(account_id, amount, now)
        await energy_store.append_transaction(
            EnergyTransaction(
                transaction_id=str(ULID()),
                account_id=account_id,
                type=TransactionType.CREDIT,
                amount=amount,
                source=source,
                balance_after=balance,
                details=details,
                reference_id=reference_id,
                created_at=now,
            )
        )
        return balance
