"""枚举定义

包含任务执行状态 ExecutionStatus、流水方向 TransactionType、
能量来源 EnergySource。
"""

from enum import StrEnum


class ExecutionStatus(StrEnum):
    """任务最近一次执行状态"""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class TransactionType(StrEnum):
    """能量流水方向"""

    CREDIT = "credit"
    DEBIT = "debit"


class EnergySource(StrEnum):
    """能量变动原因"""

    STAKING_REWARD = "staking_reward"
    STAKE_BONUS = "stake_bonus"
    PURCHASE = "purchase"
    TRADE = "trade"
    MINT = "mint"
    SOCIAL = "social"
    MONITOR = "monitor"
    SCHEDULE = "schedule"
    AIRDROP = "airdrop"
    REFERRAL = "referral"
    TASK_REWARD = "task_reward"
    MARKETPLACE = "marketplace"
