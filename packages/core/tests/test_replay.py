"""流水回放测试

测试内容：
1. replay_transactions 纯函数回放与不一致检测
2. verify_all 发现被篡改的账户余额
"""

from datetime import UTC, datetime

from airouter.core.ledger import EnergyLedger
from airouter.core.models import EnergySource, EnergyTransaction, TransactionType
from airouter.core.replay import apply_transaction, replay_transactions, verify_all
from airouter.core.store import StoreGroup


def _tx(tx_id: str, tx_type: TransactionType, amount: int, balance_after: int):
    return EnergyTransaction(
        transaction_id=tx_id,
        account_id="alice",
        type=tx_type,
        amount=amount,
        source=EnergySource.MINT,
        balance_after=balance_after,
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


class TestReplayTransactions:
    def test_apply_transaction(self):
        assert apply_transaction(10, _tx("1", TransactionType.CREDIT, 5, 15)) == 15
        assert apply_transaction(10, _tx("2", TransactionType.DEBIT, 4, 6)) == 6

    def test_consistent(self):
        txs = [
            _tx("1", TransactionType.CREDIT, 10, 10),
            _tx("2", TransactionType.DEBIT, 3, 7),
        ]
        result = replay_transactions("alice", 7, txs)
        assert result.consistent
        assert result.replayed_balance == 7
        assert result.first_mismatch_transaction_id is None

    def test_balance_after_mismatch(self):
        txs = [
            _tx("1", TransactionType.CREDIT, 10, 10),
            _tx("2", TransactionType.DEBIT, 3, 8),
        ]
        result = replay_transactions("alice", 7, txs)
        assert not result.consistent
        assert result.first_mismatch_transaction_id == "2"

    def test_stored_balance_mismatch(self):
        result = replay_transactions("alice", 99, [_tx("1", TransactionType.CREDIT, 10, 10)])
        assert not result.consistent
        assert result.first_mismatch_transaction_id is None

    def test_empty_log(self):
        result = replay_transactions("alice", 0, [])
        assert result.consistent
        assert result.transaction_count == 0


class TestVerifyAll:
    async def test_detects_tampered_balance(self, store_group: StoreGroup):
        ledger = EnergyLedger(store_group)
        await ledger.credit("alice", 10, EnergySource.MINT)
        await ledger.credit("bob", 10, EnergySource.MINT)
        assert await verify_all(store_group) == []

        await store_group.conn.execute(
            "UPDATE energy_accounts SET balance = 999 WHERE account_id = 'bob'"
        )
        await store_group.conn.commit()

        mismatches = await verify_all(store_group)
        assert [m.account_id for m in mismatches] == ["bob"]
        assert mismatches[0].replayed_balance == 10
