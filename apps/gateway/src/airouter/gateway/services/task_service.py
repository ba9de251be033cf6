"""TaskService -- 任务创建/查询/更新/删除/立即执行

所有按 task_id 的操作都校验调用方是否为任务所有者：
任务不存在 -> TaskNotFoundError，所有者不匹配 -> TaskAccessDeniedError。
"""

import structlog
from airouter.core.exceptions import TaskNotFoundError
from airouter.core.models import ScheduledTask, TaskCreate, TaskUpdate
from airouter.core.schedule import next_run, utcnow, validate_schedule
from airouter.core.store import StoreGroup
from ulid import ULID

from ..errors import TaskAccessDeniedError
from .scheduler import ExecutionLoop

log = structlog.get_logger()


class TaskService:
    """任务业务服务"""

    def __init__(self, store_group: StoreGroup, execution_loop: ExecutionLoop) -> None:
        self._stores = store_group
        self._loop = execution_loop

    async def create_task(self, owner_id: str, body: TaskCreate) -> ScheduledTask:
        """创建任务

        初始 next_execution_time：cron 表达式的下一次匹配 / 指定的执行时间 / 当前时间。

        Raises:
            InvalidScheduleError: cron 表达式非法
        """
        now = utcnow()
        schedule = None
        if body.schedule is not None:
            schedule = validate_schedule(body.schedule)
            next_time = next_run(schedule, now)
        elif body.execution_time is not None:
            next_time = body.execution_time
        else:
            next_time = now

        task = ScheduledTask(
            task_id=str(ULID()),
            owner_id=owner_id,
            agent_id=body.agent_id,
            name=body.name,
            description=body.description,
            input=body.input,
            schedule=schedule,
            next_execution_time=next_time,
            energy_cost=body.energy_cost,
            tags=body.tags,
            metadata=body.metadata,
            created_at=now,
            updated_at=now,
        )
        async with self._stores.transaction():
            await self._stores.task_store.create_task(task)

        log.info(
            "task_created",
            task_id=task.task_id,
            owner_id=owner_id,
            recurring=task.is_recurring,
            next_execution_time=next_time.isoformat(),
        )
        return task

    async def get_task(self, task_id: str, owner_id: str) -> ScheduledTask:
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if task.owner_id != owner_id:
            raise TaskAccessDeniedError(task_id)
        return task

    async def list_tasks(self, owner_id: str) -> list[ScheduledTask]:
        """查询账户下的全部任务，按下一次执行时间升序"""
        return await self._stores.task_store.list_tasks_by_owner(owner_id)

    async def update_task(
        self,
        task_id: str,
        owner_id: str,
        body: TaskUpdate,
    ) -> ScheduledTask:
        """部分更新

        修改 schedule 会立即重算 next_execution_time；
        execution_time 只对一次性任务生效。

        Raises:
            InvalidScheduleError: 新的 cron 表达式非法
        """
        changes = body.changes()
        async with self._loop.task_lock(task_id):
            task = await self.get_task(task_id, owner_id)
            now = utcnow()

            execution_time = changes.pop("execution_time", None)
            if "schedule" in changes:
                schedule = validate_schedule(changes["schedule"])
                changes["schedule"] = schedule
                changes["next_execution_time"] = next_run(schedule, now)
            elif execution_time is not None and task.schedule is None:
                changes["next_execution_time"] = execution_time

            changes["updated_at"] = now
            updated = task.model_copy(update=changes)
            async with self._stores.transaction():
                await self._stores.task_store.save_task(updated)

        log.info("task_updated", task_id=task_id, fields=sorted(changes))
        return updated

    async def delete_task(self, task_id: str, owner_id: str) -> None:
        async with self._loop.task_lock(task_id):
            await self.get_task(task_id, owner_id)
            async with self._stores.transaction():
                await self._stores.task_store.delete_task(task_id)
        log.info("task_deleted", task_id=task_id)

    async def run_now(self, task_id: str, owner_id: str) -> ScheduledTask:
        """立即执行（跳过到期判断），执行失败在结果持久化后抛给调用方

        Raises:
            InsufficientEnergyError: 准入被拒
            ExecutorFailureError / ExecutorTimeoutError: 执行失败 / 超时
        """
        await self.get_task(task_id, owner_id)
        return await self._loop.run_task(task_id, force=True, raise_errors=True)
