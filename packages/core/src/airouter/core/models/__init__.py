"""AIRouter Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .energy import (
    EnergyAccount,
    EnergyTransaction,
    LedgerReplay,
    StakeResult,
)
from .enums import EnergySource, ExecutionStatus, TransactionType
from .task import ScheduledTask, TaskCreate, TaskUpdate

__all__ = [
    # 枚举
    "ExecutionStatus",
    "TransactionType",
    "EnergySource",
    # Task
    "ScheduledTask",
    "TaskCreate",
    "TaskUpdate",
    # Energy
    "EnergyAccount",
    "EnergyTransaction",
    "StakeResult",
    "LedgerReplay",
]
