"""EnergyStore SQLite 实现

energy_accounts + energy_transactions 两张表的底层操作。
扣减类操作使用条件 UPDATE（WHERE balance >= ?），余额不足时 rowcount 为 0，
不会出现先读后写导致的负余额。此处不提交事务。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.energy import EnergyAccount, EnergyTransaction
from .sqlite_init import format_ts, parse_ts

_ACCOUNT_COLUMNS = (
    "account_id, balance, staked, lifetime_earned, lifetime_spent, "
    "last_staking_reward, created_at, updated_at"
)

_TRANSACTION_COLUMNS = (
    "transaction_id, account_id, type, amount, source, balance_after, "
    "details, reference_id, created_at"
)


class SqliteEnergyStore:
    """EnergyStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def get_account(self, account_id: str) -> EnergyAccount | None:
        cursor = await self._conn.execute(
            f"SELECT {_ACCOUNT_COLUMNS} FROM energy_accounts WHERE account_id = ?",
            (account_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    async def get_balance(self, account_id: str) -> int:
        """账户不存在时返回 0，不创建账户"""
        cursor = await self._conn.execute(
            "SELECT balance FROM energy_accounts WHERE account_id = ?",
            (account_id,),
        )
        row = await cursor.fetchone()
        return 0 if row is None else row[0]

    async def ensure_account(self, account_id: str, now: datetime) -> None:
        """账户不存在时创建空账户"""
        ts = format_ts(now)
        await self._conn.execute(
            """
            INSERT OR IGNORE INTO energy_accounts (account_id, created_at, updated_at)
            VALUES (?, ?, ?)
            """,
            (account_id, ts, ts),
        )

    async def add_balance(self, account_id: str, amount: int, now: datetime) -> int:
        """增加余额与累计获得量，返回变动后余额"""
        await self._conn.execute(
            """
            UPDATE energy_accounts
            SET balance = balance + ?, lifetime_earned = lifetime_earned + ?,
                updated_at = ?
            WHERE account_id = ?
            """,
            (amount, amount, format_ts(now), account_id),
        )
        return await self.get_balance(account_id)

    async def try_subtract_balance(
        self,
        account_id: str,
        amount: int,
        now: datetime,
    ) -> int | None:
        """条件扣减余额，余额不足或账户不存在时返回 None"""
        cursor = await self._conn.execute(
            """
            UPDATE energy_accounts
            SET balance = balance - ?, lifetime_spent = lifetime_spent + ?,
                updated_at = ?
            WHERE account_id = ? AND balance >= ?
            """,
            (amount, amount, format_ts(now), account_id, amount),
        )
        if cursor.rowcount == 0:
            return None
        return await self.get_balance(account_id)

    async def add_staked(self, account_id: str, amount: int, now: datetime) -> int:
        await self._conn.execute(
            """
            UPDATE energy_accounts SET staked = staked + ?, updated_at = ?
            WHERE account_id = ?
            """,
            (amount, format_ts(now), account_id),
        )
        return await self._get_staked(account_id)

    async def try_subtract_staked(
        self,
        account_id: str,
        amount: int,
        now: datetime,
    ) -> int | None:
        """条件扣减质押量，质押不足时返回 None"""
        cursor = await self._conn.execute(
            """
            UPDATE energy_accounts SET staked = staked - ?, updated_at = ?
            WHERE account_id = ? AND staked >= ?
            """,
            (amount, format_ts(now), account_id, amount),
        )
        if cursor.rowcount == 0:
            return None
        return await self._get_staked(account_id)

    async def mark_staking_reward(self, account_id: str, now: datetime) -> None:
        await self._conn.execute(
            """
            UPDATE energy_accounts SET last_staking_reward = ?, updated_at = ?
            WHERE account_id = ?
            """,
            (format_ts(now), format_ts(now), account_id),
        )

    async def list_staked_accounts(self) -> list[EnergyAccount]:
        """查询 staked > 0 的账户"""
        cursor = await self._conn.execute(
            f"SELECT {_ACCOUNT_COLUMNS} FROM energy_accounts "
            "WHERE staked > 0 ORDER BY account_id"
        )
        rows = await cursor.fetchall()
        return [self._row_to_account(row) for row in rows]

    async def append_transaction(self, tx: EnergyTransaction) -> None:
        """追加流水（append-only）"""
        await self._conn.execute(
            f"INSERT INTO energy_transactions ({_TRANSACTION_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                tx.transaction_id,
                tx.account_id,
                tx.type.value,
                tx.amount,
                tx.source.value,
                tx.balance_after,
                json.dumps(tx.details, ensure_ascii=False) if tx.details is not None else None,
                tx.reference_id,
                format_ts(tx.created_at),
            ),
        )

    async def list_transactions(
        self,
        account_id: str,
        limit: int,
        offset: int = 0,
    ) -> list[EnergyTransaction]:
        """按写入顺序倒序分页查询流水（rowid 即写入顺序，不受时钟回拨影响）"""
        cursor = await self._conn.execute(
            f"SELECT {_TRANSACTION_COLUMNS} FROM energy_transactions "
            "WHERE account_id = ? ORDER BY rowid DESC "
            "LIMIT ? OFFSET ?",
            (account_id, limit, offset),
        )
        rows = await cursor.fetchall()
        return [self._row_to_transaction(row) for row in rows]

    async def get_all_transactions(self, account_id: str) -> list[EnergyTransaction]:
        """按写入顺序返回账户全部流水（用于回放）"""
        cursor = await self._conn.execute(
            f"SELECT {_TRANSACTION_COLUMNS} FROM energy_transactions "
            "WHERE account_id = ? ORDER BY rowid ASC",
            (account_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_transaction(row) for row in rows]

    async def _get_staked(self, account_id: str) -> int:
        cursor = await self._conn.execute(
            "SELECT staked FROM energy_accounts WHERE account_id = ?",
            (account_id,),
        )
        row = await cursor.fetchone()
        return 0 if row is None else row[0]

    @staticmethod
    def _row_to_account(row: aiosqlite.Row) -> EnergyAccount:
        return EnergyAccount(
            account_id=row[0],
            balance=row[1],
            staked=row[2],
            lifetime_earned=row[3],
            lifetime_spent=row[4],
            last_staking_reward=parse_ts(row[5]),
            created_at=parse_ts(row[6]),
            updated_at=parse_ts(row[7]),
        )

    @staticmethod
    def _row_to_transaction(row: aiosqlite.Row) -> EnergyTransaction:
        return EnergyTransaction(
            transaction_id=row[0],
            account_id=row[1],
            type=row[2],
            amount=row[3],
            source=row[4],
            balance_after=row[5],
            details=json.loads(row[6]) if row[6] is not None else None,
            reference_id=row[7],
            created_at=parse_ts(row[8]),
        )
