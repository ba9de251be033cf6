"""SQLite 数据库初始化

PRAGMA 配置 + 三张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

from datetime import UTC, datetime

import aiosqlite

# scheduled_tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS scheduled_tasks (
    task_id                TEXT PRIMARY KEY,
    owner_id               TEXT NOT NULL,
    agent_id               TEXT NOT NULL,
    name                   TEXT NOT NULL,
    description            TEXT NOT NULL DEFAULT '',
    input                  TEXT NOT NULL DEFAULT '',
    schedule               TEXT,
    next_execution_time    TEXT NOT NULL,
    last_execution_time    TEXT,
    last_execution_status  TEXT NOT NULL DEFAULT 'pending',
    last_execution_result  TEXT,
    execution_count        INTEGER NOT NULL DEFAULT 0,
    energy_cost            INTEGER NOT NULL DEFAULT 15 CHECK (energy_cost >= 0),
    is_active              INTEGER NOT NULL DEFAULT 1,
    tags                   TEXT NOT NULL DEFAULT '[]',
    metadata               TEXT NOT NULL DEFAULT '{}',
    created_at             TEXT NOT NULL,
    updated_at             TEXT NOT NULL
);
"""

_TASKS_INDEXES = [
    # 到期任务扫描
    (
        "CREATE INDEX IF NOT EXISTS idx_tasks_due "
        "ON scheduled_tasks(is_active, next_execution_time);"
    ),
    "CREATE INDEX IF NOT EXISTS idx_tasks_owner ON scheduled_tasks(owner_id);",
    (
        "CREATE INDEX IF NOT EXISTS idx_tasks_last_execution "
        "ON scheduled_tasks(last_execution_time);"
    ),
]

# energy_accounts 表 DDL
_ACCOUNTS_DDL = """
CREATE TABLE IF NOT EXISTS energy_accounts (
    account_id           TEXT PRIMARY KEY,
    balance              INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
    staked               INTEGER NOT NULL DEFAULT 0 CHECK (staked >= 0),
    lifetime_earned      INTEGER NOT NULL DEFAULT 0,
    lifetime_spent       INTEGER NOT NULL DEFAULT 0,
    last_staking_reward  TEXT,
    created_at           TEXT NOT NULL,
    updated_at           TEXT NOT NULL
);
"""

_ACCOUNTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_accounts_staked ON energy_accounts(staked);",
]

# energy_transactions 表 DDL（append-only）
_TRANSACTIONS_DDL = """
CREATE TABLE IF NOT EXISTS energy_transactions (
    transaction_id  TEXT PRIMARY KEY,
    account_id      TEXT NOT NULL,
    type            TEXT NOT NULL CHECK (type IN ('credit', 'debit')),
    amount          INTEGER NOT NULL CHECK (amount > 0),
    source          TEXT NOT NULL,
    balance_after   INTEGER NOT NULL CHECK (balance_after >= 0),
    details         TEXT,
    reference_id    TEXT,
    created_at      TEXT NOT NULL,

    FOREIGN KEY (account_id) REFERENCES energy_accounts(account_id)
);
"""

_TRANSACTIONS_INDEXES = [
    # 索引项隐含 rowid，按账户 + 写入顺序查询可直接走索引
    "CREATE INDEX IF NOT EXISTS idx_transactions_account ON energy_transactions(account_id);",
]


def format_ts(value: datetime) -> str:
    """时间统一存为固定精度的 UTC ISO 字符串，保证字符串比较即时间比较"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_TASKS_DDL)
    await conn.execute(_ACCOUNTS_DDL)
    await conn.execute(_TRANSACTIONS_DDL)

    # 创建索引
    for idx_sql in _TASKS_INDEXES + _ACCOUNTS_INDEXES + _TRANSACTIONS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效"""
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
