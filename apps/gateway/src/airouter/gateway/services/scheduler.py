"""ExecutionLoop -- 到期任务的准入、执行、重排

每个 tick：
1. 查询 is_active 且 next_execution_time <= now 的任务
2. 每个任务独立处理（互不影响，信号量限制并发）：
   a. 准入：余额 < energy_cost 时直接记为 failed（"insufficient energy"），不调用执行器
   b. 执行：带超时调用 Action Executor；成功后扣减能量（source=schedule）
   c. 重排：周期任务计算下一次时间（表达式非法时兜底 +1 天）；一次性任务停用
   d. 持久化
同一任务通过任务级锁串行化，锁内重新读取任务，避免 tick 与 run-now 重复执行。
"""

import asyncio
import json
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any

import structlog
from airouter.core.config import (
    EXECUTION_TIMEOUT_S,
    INSUFFICIENT_ENERGY_RESULT,
    INVALID_SCHEDULE_FALLBACK_S,
    MAX_CONCURRENT_EXECUTIONS,
    TICK_BATCH_LIMIT,
)
from airouter.core.exceptions import (
    InsufficientEnergyError,
    InvalidScheduleError,
    TaskNotFoundError,
)
from airouter.core.ledger import EnergyLedger
from airouter.core.models import EnergySource, ExecutionStatus, ScheduledTask
from airouter.core.schedule import next_run, utcnow
from airouter.core.store import StoreGroup
from airouter.executor import (
    ActionExecutor,
    ActionResult,
    ExecutorError,
    ExecutorFailureError,
    ExecutorTimeoutError,
)
from pydantic import BaseModel

log = structlog.get_logger()


def serialize_result(result: Any) -> str:
    """将执行结果转换为可存储的字符串"""
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    return json.dumps(result, ensure_ascii=False, default=str)


class ExecutionLoop:
    """资源门控的任务执行循环"""

    def __init__(
        self,
        store_group: StoreGroup,
        ledger: EnergyLedger,
        executor: ActionExecutor,
        *,
        timeout_s: float = EXECUTION_TIMEOUT_S,
        max_concurrency: int = MAX_CONCURRENT_EXECUTIONS,
        batch_limit: int = TICK_BATCH_LIMIT,
        invalid_schedule_fallback_s: int = INVALID_SCHEDULE_FALLBACK_S,
    ) -> None:
        self._stores = store_group
        self._ledger = ledger
        self._executor = executor
        self.timeout_s = timeout_s
        self._batch_limit = batch_limit
        self._fallback = timedelta(seconds=invalid_schedule_fallback_s)
        self._semaphore = asyncio.Semaphore(max(max_concurrency, 1))
        self._task_locks: dict[str, asyncio.Lock] = {}
        self._task_lock_users: dict[str, int] = {}
        self._task_locks_guard = asyncio.Lock()

    @asynccontextmanager
    async def task_lock(self, task_id: str) -> AsyncIterator[None]:
        """持有 task 级别锁，序列化同一任务的执行、更新与删除。

        最后一个使用者释放后清理 lock，任务删除或停用后不再占用字典。
        """
        async with self._task_locks_guard:
            lock = self._task_locks.get(task_id)
            if lock is None:
                lock = asyncio.Lock()
                self._task_locks[task_id] = lock
            self._task_lock_users[task_id] = self._task_lock_users.get(task_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._cleanup_task_lock(task_id)

    def _cleanup_task_lock(self, task_id: str) -> None:
        users = self._task_lock_users.get(task_id, 1) - 1
        if users > 0:
            self._task_lock_users[task_id] = users
            return
        self._task_lock_users.pop(task_id, None)
        lock = self._task_locks.get(task_id)
        if lock is not None and not lock.locked():
            self._task_locks.pop(task_id, None)

    async def tick(self, now: datetime | None = None) -> int:
        """处理一批到期任务，返回处理的任务数"""
        now = now or utcnow()
        due = await self._stores.task_store.list_due_tasks(now, limit=self._batch_limit)
        if not due:
            return 0

        log.info("execution_tick_started", due_count=len(due))
        start_time = time.monotonic()

        results = await asyncio.gather(
            *(self._process_guarded(task.task_id, now) for task in due)
        )
        processed = sum(1 for ok in results if ok)

        log.info(
            "execution_tick_completed",
            due_count=len(due),
            processed=processed,
            elapsed_ms=int((time.monotonic() - start_time) * 1000),
        )
        return processed

    async def _process_guarded(self, task_id: str, now: datetime) -> bool:
        """单任务处理，异常只记录日志，不影响同一 tick 的其它任务"""
        async with self._semaphore:
            try:
                await self.run_task(task_id, now=now)
                return True
            except Exception as e:
                log.error(
                    "task_processing_failed",
                    task_id=task_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return False

    async def run_task(
        self,
        task_id: str,
        *,
        now: datetime | None = None,
        force: bool = False,
        raise_errors: bool = False,
    ) -> ScheduledTask:
        """准入 + 执行 + 重排 + 持久化

        Args:
            task_id: 任务 ID
            now: 本次执行时间
            force: True 时跳过到期判断（run-now）
            raise_errors: True 时在结果持久化后把执行失败抛给调用方

        Returns:
            更新后的任务；未到期且非 force 时原样返回

        Raises:
            TaskNotFoundError: 任务不存在
            InsufficientEnergyError / ExecutorFailureError / ExecutorTimeoutError:
                仅 raise_errors=True 时
        """
        async with self.task_lock(task_id):
            now = now or utcnow()
            task = await self._stores.task_store.get_task(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            if not force and (not task.is_active or task.next_execution_time > now):
                # 已被其它执行者处理
                return task

            updated, error = await self._attempt(task, now)
            updated = self._reschedule(updated, now)

            async with self._stores.transaction():
                await self._stores.task_store.save_task(updated)

        log.info(
            "task_execution_recorded",
            task_id=task_id,
            status=updated.last_execution_status.value,
            execution_count=updated.execution_count,
            is_active=updated.is_active,
            next_execution_time=updated.next_execution_time.isoformat(),
        )

        if raise_errors and error is not None:
            raise error
        return updated

    async def _attempt(
        self,
        task: ScheduledTask,
        now: datetime,
    ) -> tuple[ScheduledTask, Exception | None]:
        """准入检查与执行，返回更新了执行状态的任务和失败原因"""
        balance = await self._ledger.get_balance(task.owner_id)
        if balance < task.energy_cost:
            log.info(
                "task_admission_denied",
                task_id=task.task_id,
                owner_id=task.owner_id,
                balance=balance,
                energy_cost=task.energy_cost,
            )
            return self._failed(task, now, INSUFFICIENT_ENERGY_RESULT), InsufficientEnergyError(
                task.owner_id, task.energy_cost, balance
            )

        try:
            result = await asyncio.wait_for(
                self._executor.execute(task.agent_id, task.input),
                timeout=self.timeout_s,
            )
            if isinstance(result, ActionResult) and not result.success:
                raise ExecutorFailureError(result.error or "action rejected")
        except TimeoutError:
            error: ExecutorError = ExecutorTimeoutError(task.agent_id, self.timeout_s)
            log.warning("task_execution_timeout", task_id=task.task_id, timeout_s=self.timeout_s)
            return self._failed(task, now, error.message), error
        except ExecutorError as e:
            log.warning("task_execution_failed", task_id=task.task_id, error=e.message)
            return self._failed(task, now, e.message), e
        except Exception as e:
            error = ExecutorFailureError(str(e) or type(e).__name__)
            log.warning(
                "task_execution_failed",
                task_id=task.task_id,
                error=error.message,
                error_type=type(e).__name__,
            )
            return self._failed(task, now, error.message), error

        if task.energy_cost > 0:
            try:
                await self._ledger.debit(
                    task.owner_id,
                    task.energy_cost,
                    EnergySource.SCHEDULE,
                    details={"task_name": task.name},
                    reference_id=task.task_id,
                )
            except InsufficientEnergyError as e:
                # 执行期间余额被其它操作消耗
                log.warning(
                    "task_debit_failed",
                    task_id=task.task_id,
                    owner_id=task.owner_id,
                    energy_cost=task.energy_cost,
                )
                return self._failed(task, now, INSUFFICIENT_ENERGY_RESULT), e

        updated = task.model_copy(
            update={
                "last_execution_time": now,
                "last_execution_status": ExecutionStatus.SUCCESS,
                "last_execution_result": serialize_result(result),
                "execution_count": task.execution_count + 1,
                "updated_at": now,
            }
        )
        return updated, None

    @staticmethod
    def _failed(task: ScheduledTask, now: datetime, message: str) -> ScheduledTask:
        return task.model_copy(
            update={
                "last_execution_time": now,
                "last_execution_status": ExecutionStatus.FAILED,
                "last_execution_result": message,
                "updated_at": now,
            }
        )

    def _reschedule(self, task: ScheduledTask, now: datetime) -> ScheduledTask:
        """周期任务计算下一次执行时间，一次性任务停用"""
        if task.schedule is None:
            return task.model_copy(update={"is_active": False})

        try:
            next_time = next_run(task.schedule, now)
        except InvalidScheduleError as e:
            next_time = now + self._fallback
            log.error(
                "task_schedule_invalid",
                task_id=task.task_id,
                schedule=task.schedule,
                error=e.reason,
                fallback_next_execution_time=next_time.isoformat(),
            )
        return task.model_copy(update={"next_execution_time": next_time})


async def run_periodic(
    job_name: str,
    job: Callable[[], Awaitable[Any]],
    interval_s: float,
    *,
    run_immediately: bool = True,
) -> None:
    """按固定间隔循环执行 job，直到被取消

    job 的异常只记录日志，不会终止循环。
    """
    log.info("periodic_job_started", job=job_name, interval_s=interval_s)
    if not run_immediately:
        await asyncio.sleep(interval_s)

    while True:
        start_time = time.monotonic()
        try:
            await job()
        except Exception as e:
            log.error(
                "periodic_job_failed",
                job=job_name,
                error=str(e),
                error_type=type(e).__name__,
            )
        elapsed = time.monotonic() - start_time
        await asyncio.sleep(max(interval_s - elapsed, 0))
