"""Energy Domain Model

EnergyAccount：每个账户一条，余额与质押量恒为非负。
EnergyTransaction：不可变流水，每次余额变动恰好对应一条，携带变动后余额。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import EnergySource, TransactionType


class EnergyAccount(BaseModel):
    """能量账户"""

    account_id: str = Field(description="账户 ID")
    balance: int = Field(default=0, ge=0, description="可用能量")
    staked: int = Field(default=0, ge=0, description="已质押 token 数量")
    lifetime_earned: int = Field(default=0, ge=0, description="累计获得能量")
    lifetime_spent: int = Field(default=0, ge=0, description="累计消耗能量")
    last_staking_reward: datetime | None = Field(
        default=None, description="最近一次质押奖励发放时间"
    )
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")


class EnergyTransaction(BaseModel):
    """能量流水（append-only）"""

    transaction_id: str = Field(description="唯一标识，ULID 格式")
    account_id: str = Field(description="账户 ID")
    type: TransactionType = Field(description="credit / debit")
    amount: int = Field(gt=0, description="变动数量")
    source: EnergySource = Field(description="变动原因")
    balance_after: int = Field(ge=0, description="变动后余额")
    details: dict[str, Any] | None = Field(default=None, description="附加信息")
    reference_id: str | None = Field(
        default=None, description="外部引用 ID（链上交易 / 任务 ID）"
    )
    created_at: datetime = Field(description="创建时间")


class StakeResult(BaseModel):
    """质押结果"""

    balance: int
    staked: int


class LedgerReplay(BaseModel):
    """流水回放校验结果"""

    account_id: str
    stored_balance: int
    replayed_balance: int
    transaction_count: int
    consistent: bool
    first_mismatch_transaction_id: str | None = None
