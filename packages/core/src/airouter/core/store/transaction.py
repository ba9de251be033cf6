"""写事务封装

所有 Store 共享同一个 aiosqlite 连接，commit/rollback 作用于整个连接。
写操作必须持有 StoreGroup.write_lock，避免一个协程提交或回滚了
另一个协程尚未完成的写入。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite


@asynccontextmanager
async def write_transaction(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
) -> AsyncIterator[aiosqlite.Connection]:
    """在写锁内执行一组写操作，正常退出时提交，异常（含取消）时回滚

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        lock: 连接级写锁

    Raises:
        Exception: 块内异常在回滚后原样抛出
    """
    async with lock:
        try:
            yield conn
            await conn.commit()
        except BaseException:
            await conn.rollback()
            raise
