"""流水回放模块

从 energy_transactions 表回放出账户余额，与 energy_accounts 中的余额比对，
校验 sum(credit) - sum(debit) == balance 以及每条流水的 balance_after。
"""

import time

import structlog

from .models.energy import EnergyTransaction, LedgerReplay
from .models.enums import TransactionType
from .store import StoreGroup

log = structlog.get_logger()


def apply_transaction(balance: int, tx: EnergyTransaction) -> int:
    """将单条流水应用到余额

    Args:
        balance: 应用前余额
        tx: 流水记录

    Returns:
        应用后余额
    """
    if tx.type == TransactionType.CREDIT:
        return balance + tx.amount
    return balance - tx.amount


def replay_transactions(
    account_id: str,
    stored_balance: int,
    transactions: list[EnergyTransaction],
) -> LedgerReplay:
    """按写入顺序回放流水

    Args:
        account_id: 账户 ID
        stored_balance: 账户表中的当前余额
        transactions: 按写入顺序排列的流水

    Returns:
        LedgerReplay，consistent=True 表示余额与每条 balance_after 都吻合
    """
    balance = 0
    first_mismatch: str | None = None
    for tx in transactions:
        balance = apply_transaction(balance, tx)
        if first_mismatch is None and tx.balance_after != balance:
            first_mismatch = tx.transaction_id

    return LedgerReplay(
        account_id=account_id,
        stored_balance=stored_balance,
        replayed_balance=balance,
        transaction_count=len(transactions),
        consistent=first_mismatch is None and balance == stored_balance,
        first_mismatch_transaction_id=first_mismatch,
    )


async def verify_all(store_group: StoreGroup) -> list[LedgerReplay]:
    """校验所有账户，返回不一致的账户列表"""
    start_time = time.monotonic()

    cursor = await store_group.conn.execute(
        "SELECT account_id, balance FROM energy_accounts ORDER BY account_id"
    )
    rows = await cursor.fetchall()

    await log.ainfo("ledger_verify_started", account_count=len(rows))

    mismatches: list[LedgerReplay] = []
    for row in rows:
        transactions = await store_group.energy_store.get_all_transactions(row[0])
        result = replay_transactions(row[0], row[1], transactions)
        if not result.consistent:
            mismatches.append(result)
            await log.awarning(
                "ledger_mismatch",
                account_id=result.account_id,
                stored_balance=result.stored_balance,
                replayed_balance=result.replayed_balance,
                first_mismatch_transaction_id=result.first_mismatch_transaction_id,
            )

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    await log.ainfo(
        "ledger_verify_completed",
        account_count=len(rows),
        mismatch_count=len(mismatches),
        elapsed_ms=elapsed_ms,
    )
    return mismatches
