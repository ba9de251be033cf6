"""Retention Sweeper -- 清理过期的已结束一次性任务

删除条件：is_active = False、没有 cron 表达式、last_execution_time 早于保留窗口。
活跃任务与周期任务永远不会被删除。
"""

from datetime import datetime, timedelta

import structlog

from .config import TASK_RETENTION_DAYS
from .schedule import utcnow
from .store import StoreGroup

log = structlog.get_logger()


class RetentionSweeper:
    """按固定保留窗口清理任务"""

    def __init__(
        self,
        store_group: StoreGroup,
        retention_days: int = TASK_RETENTION_DAYS,
    ) -> None:
        self._stores = store_group
        self.retention = timedelta(days=retention_days)

    async def sweep(self, now: datetime | None = None) -> int:
        """执行一次清理，返回删除的任务数"""
        now = now or utcnow()
        cutoff = now - self.retention
        async with self._stores.transaction():
            deleted = await self._stores.task_store.delete_expired_one_shot(cutoff)
        log.info(
            "retention_sweep_completed",
            deleted=deleted,
            cutoff=cutoff.isoformat(),
        )
        return deleted
