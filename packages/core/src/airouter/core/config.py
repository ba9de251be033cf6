"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、调度 tick 间隔、执行超时、能量与质押参数等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("AIROUTER_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "AIROUTER_DB_PATH",
        str(_get_base_dir() / "sqlite" / "airouter.db"),
    )


def scheduler_enabled() -> bool:
    """是否在 gateway 进程内启动周期任务（tick / 清理 / 质押奖励）"""
    return os.environ.get("AIROUTER_SCHEDULER_ENABLED", "true").lower() != "false"


# 执行循环 tick 间隔（秒）
TICK_INTERVAL_S: float = float(os.environ.get("AIROUTER_TICK_INTERVAL_S", "60"))

# 单个任务执行超时（秒），超时视为执行失败
EXECUTION_TIMEOUT_S: float = float(
    os.environ.get("AIROUTER_EXECUTION_TIMEOUT_S", "30")
)

# 单个 tick 内并发执行的任务上限
MAX_CONCURRENT_EXECUTIONS: int = int(
    os.environ.get("AIROUTER_MAX_CONCURRENT_EXECUTIONS", "8")
)

# 单个 tick 最多拉取的到期任务数
TICK_BATCH_LIMIT: int = int(os.environ.get("AIROUTER_TICK_BATCH_LIMIT", "100"))

# 任务默认能量消耗
DEFAULT_ENERGY_COST: int = int(os.environ.get("AIROUTER_DEFAULT_ENERGY_COST", "15"))

# cron 表达式无法解析时的兜底重排间隔（秒）
INVALID_SCHEDULE_FALLBACK_S: int = int(
    os.environ.get("AIROUTER_INVALID_SCHEDULE_FALLBACK_S", "86400")
)

# 已结束的一次性任务保留天数
TASK_RETENTION_DAYS: int = int(os.environ.get("AIROUTER_TASK_RETENTION_DAYS", "30"))

# 清理任务运行间隔（秒）
RETENTION_SWEEP_INTERVAL_S: float = float(
    os.environ.get("AIROUTER_RETENTION_SWEEP_INTERVAL_S", "86400")
)

# 质押一次性奖励倍率（每质押 1 token 奖励的能量）
STAKE_BONUS_RATE: int = int(os.environ.get("AIROUTER_STAKE_BONUS_RATE", "10"))

# 质押日奖励比例
STAKING_REWARD_RATE: float = float(
    os.environ.get("AIROUTER_STAKING_REWARD_RATE", "0.01")
)

# 质押奖励发放间隔（秒）
STAKING_REWARD_INTERVAL_S: float = float(
    os.environ.get("AIROUTER_STAKING_REWARD_INTERVAL_S", "86400")
)

# 流水查询默认分页大小
TRANSACTION_HISTORY_LIMIT: int = 20

# 能量不足时写入任务的结果文本
INSUFFICIENT_ENERGY_RESULT: str = "insufficient energy"

# token 兑换能量的比例（每 1 token 兑换的能量）
ENERGY_PER_TOKEN: int = int(os.environ.get("AIROUTER_ENERGY_PER_TOKEN", "100"))
