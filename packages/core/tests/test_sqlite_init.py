"""SQLite 初始化与写事务测试"""

import asyncio
from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path

import aiosqlite
import pytest
from airouter.core.store import create_store_group, write_transaction
from airouter.core.store.sqlite_init import format_ts, init_db, parse_ts


class TestInitDb:
    async def test_tables_created(self, db_conn: aiosqlite.Connection):
        cursor = await db_conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
        )
        tables = {row[0] for row in await cursor.fetchall()}
        assert {"scheduled_tasks", "energy_accounts", "energy_transactions"} <= tables

    async def test_idempotent(self, db_conn: aiosqlite.Connection):
        await init_db(db_conn)
        await init_db(db_conn)

    async def test_negative_balance_rejected(self, db_conn: aiosqlite.Connection):
        with pytest.raises(aiosqlite.IntegrityError):
            await db_conn.execute(
                "INSERT INTO energy_accounts (account_id, balance, created_at, updated_at) "
                "VALUES ('alice', -1, 'x', 'x')"
            )

    async def test_transaction_requires_account(self, db_conn: aiosqlite.Connection):
        with pytest.raises(aiosqlite.IntegrityError):
            await db_conn.execute(
                "INSERT INTO energy_transactions "
                "(transaction_id, account_id, type, amount, source, balance_after, created_at) "
                "VALUES ('t1', 'ghost', 'credit', 1, 'mint', 1, 'x')"
            )


class TestTimestamps:
    def test_utc_fixed_precision(self):
        plus8 = timezone(timedelta(hours=8))
        value = datetime(2030, 1, 1, 8, 0, tzinfo=plus8)
        assert format_ts(value) == "2030-01-01T00:00:00.000000+00:00"
        assert parse_ts(format_ts(value)) == value

    def test_string_order_matches_time_order(self):
        earlier = datetime(2030, 1, 1, 0, 0, 0, 999999, tzinfo=UTC)
        later = datetime(2030, 1, 1, 0, 0, 1, tzinfo=UTC)
        assert format_ts(earlier) < format_ts(later)

    def test_naive_treated_as_utc(self):
        assert format_ts(datetime(2030, 1, 1)) == "2030-01-01T00:00:00.000000+00:00"
        assert parse_ts(None) is None


class TestWriteTransaction:
    async def test_rollback_on_error(self, tmp_db_path: Path):
        group = await create_store_group(str(tmp_db_path))
        try:
            with pytest.raises(RuntimeError):
                async with write_transaction(group.conn, group.write_lock):
                    await group.energy_store.ensure_account("alice", datetime.now(UTC))
                    raise RuntimeError("boom")

            assert await group.energy_store.get_account("alice") is None
            assert not group.write_lock.locked()
        finally:
            await group.conn.close()

    async def test_rollback_on_cancel(self, tmp_db_path: Path):
        group = await create_store_group(str(tmp_db_path))
        started = asyncio.Event()

        async def writer() -> None:
            async with group.transaction():
                await group.energy_store.ensure_account("bob", datetime.now(UTC))
                started.set()
                await asyncio.sleep(10)

        try:
            task = asyncio.create_task(writer())
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

            assert await group.energy_store.get_account("bob") is None
        finally:
            await group.conn.close()
