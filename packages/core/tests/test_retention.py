"""Retention Sweeper 单元测试

只删除：已停用 + 非周期 + 最近执行早于 30 天。
"""

from datetime import UTC, datetime, timedelta

from airouter.core.models import ExecutionStatus, ScheduledTask
from airouter.core.retention import RetentionSweeper
from airouter.core.store import StoreGroup

NOW = datetime(2024, 3, 1, tzinfo=UTC)


def _make_task(task_id: str, days_ago: int | None, **overrides) -> ScheduledTask:
    last = NOW - timedelta(days=days_ago) if days_ago is not None else None
    fields = dict(
        task_id=task_id,
        owner_id="alice",
        agent_id="agent-1",
        name=task_id,
        next_execution_time=last or NOW,
        last_execution_time=last,
        last_execution_status=ExecutionStatus.SUCCESS if last else ExecutionStatus.PENDING,
        is_active=False,
        created_at=NOW - timedelta(days=60),
        updated_at=last or NOW,
    )
    fields.update(overrides)
    return ScheduledTask(**fields)


class TestRetentionSweeper:
    """清理规则测试"""

    async def test_31_days_deleted_29_days_kept(self, store_group: StoreGroup):
        old = _make_task("T-OLD", 31)
        recent = _make_task("T-RECENT", 29)
        async with store_group.transaction():
            await store_group.task_store.create_task(old)
            await store_group.task_store.create_task(recent)

        deleted = await RetentionSweeper(store_group, retention_days=30).sweep(NOW)

        assert deleted == 1
        assert await store_group.task_store.get_task("T-OLD") is None
        assert await store_group.task_store.get_task("T-RECENT") is not None

    async def test_active_and_recurring_never_deleted(self, store_group: StoreGroup):
        async with store_group.transaction():
            await store_group.task_store.create_task(
                _make_task("T-ACTIVE", 90, is_active=True)
            )
            await store_group.task_store.create_task(
                _make_task("T-RECURRING", 90, schedule="0 0 * * *")
            )
            await store_group.task_store.create_task(_make_task("T-NEVER-RUN", None))

        deleted = await RetentionSweeper(store_group).sweep(NOW)

        assert deleted == 0
        for task_id in ("T-ACTIVE", "T-RECURRING", "T-NEVER-RUN"):
            assert await store_group.task_store.get_task(task_id) is not None

    async def test_empty_store(self, store_group: StoreGroup):
        assert await RetentionSweeper(store_group).sweep() == 0
