"""Store Protocol 接口定义

定义 TaskStore、EnergyStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from datetime import datetime
from typing import Protocol

from ..models.energy import EnergyAccount, EnergyTransaction
from ..models.task import ScheduledTask


class TaskStore(Protocol):
    """Task 存储接口"""

    async def create_task(self, task: ScheduledTask) -> None:
        """创建任务记录"""
        ...

    async def get_task(self, task_id: str) -> ScheduledTask | None:
        """根据 task_id 查询任务"""
        ...

    async def list_tasks_by_owner(self, owner_id: str) -> list[ScheduledTask]:
        """查询账户下的任务"""
        ...

    async def list_due_tasks(
        self,
        now: datetime,
        limit: int | None = None,
    ) -> list[ScheduledTask]:
        """查询已到期的活跃任务"""
        ...

    async def save_task(self, task: ScheduledTask) -> None:
        """覆盖任务可变字段"""
        ...

    async def delete_task(self, task_id: str) -> bool:
        """删除任务"""
        ...

    async def delete_expired_one_shot(self, cutoff: datetime) -> int:
        """删除过期的已结束一次性任务"""
        ...


class EnergyStore(Protocol):
    """Energy 存储接口

    流水表 append-only：只允许插入，不允许更新或删除。
    """

    async def get_account(self, account_id: str) -> EnergyAccount | None: ...

    async def get_balance(self, account_id: str) -> int: ...

    async def ensure_account(self, account_id: str, now: datetime) -> None: ...

    async def add_balance(self, account_id: str, amount: int, now: datetime) -> int: ...

    async def try_subtract_balance(
        self,
        account_id: str,
        amount: int,
        now: datetime,
    ) -> int | None: ...

    async def add_staked(self, account_id: str, amount: int, now: datetime) -> int: ...

    async def try_subtract_staked(
        self,
        account_id: str,
        amount: int,
        now: datetime,
    ) -> int | None: ...

    async def mark_staking_reward(self, account_id: str, now: datetime) -> None: ...

    async def list_staked_accounts(self) -> list[EnergyAccount]: ...

    async def append_transaction(self, tx: EnergyTransaction) -> None: ...

    async def list_transactions(
        self,
        account_id: str,
        limit: int,
        offset: int = 0,
    ) -> list[EnergyTransaction]: ...

    async def get_all_transactions(self, account_id: str) -> list[EnergyTransaction]: ...
