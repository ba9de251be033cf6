"""ScheduledTask Domain Model

定时任务：一次性任务（execution_time）或周期任务（schedule cron 表达式）。
状态字段只由执行循环或显式 update 修改。
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from ..config import DEFAULT_ENERGY_COST
from .enums import ExecutionStatus


def _as_utc(value: datetime | None) -> datetime | None:
    """naive 时间视为 UTC，aware 时间统一换算到 UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class ScheduledTask(BaseModel):
    """定时任务数据模型

    不变量：
    - 周期任务不会因执行而被停用
    - 一次性任务在唯一一次执行尝试后（无论成败）置 is_active=False
    """

    task_id: str = Field(description="唯一标识，ULID 格式")
    owner_id: str = Field(description="所属账户 ID")
    agent_id: str = Field(description="执行任务的 agent ID")
    name: str = Field(description="任务名称")
    description: str = Field(default="", description="任务描述")
    input: str = Field(default="", description="传给 Action Executor 的输入")
    schedule: str | None = Field(default=None, description="cron 表达式（周期任务）")
    next_execution_time: datetime = Field(description="下一次可执行时间")
    last_execution_time: datetime | None = Field(default=None, description="最近执行时间")
    last_execution_status: ExecutionStatus = Field(
        default=ExecutionStatus.PENDING, description="最近执行状态"
    )
    last_execution_result: str | None = Field(default=None, description="最近执行结果")
    execution_count: int = Field(default=0, ge=0, description="成功执行次数")
    energy_cost: int = Field(default=DEFAULT_ENERGY_COST, ge=0, description="每次执行消耗能量")
    is_active: bool = Field(default=True, description="False 表示终态")
    tags: list[str] = Field(default_factory=list, description="标签")
    metadata: dict[str, Any] = Field(default_factory=dict, description="自定义元数据")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")

    @property
    def is_recurring(self) -> bool:
        return self.schedule is not None



def _normalize_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("name must not be blank")
    return value

class TaskCreate(BaseModel):
    """创建任务请求

    schedule 与 execution_time 互斥；两者都未提供时视为立即执行的一次性任务。
    """

    name: str = Field(min_length=1, max_length=100, description="任务名称")
    description: str = Field(default="", max_length=500, description="任务描述")
    agent_id: str = Field(min_length=1, description="执行任务的 agent ID")
    input: str = Field(default="", description="传给 Action Executor 的输入")
    schedule: str | None = Field(default=None, description="cron 表达式")
    execution_time: datetime | None = Field(default=None, description="一次性执行时间")
    energy_cost: int = Field(default=DEFAULT_ENERGY_COST, ge=0, description="每次执行消耗能量")
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return _normalize_name(value)

    @field_validator("execution_time")
    @classmethod
    def _normalize_execution_time(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_exclusive(self) -> "TaskCreate":
        if self.schedule is not None and self.execution_time is not None:
            raise ValueError("schedule and execution_time are mutually exclusive")
        return self


class TaskUpdate(BaseModel):
    """部分更新请求，只应用显式提供的字段"""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    input: str | None = None
    schedule: str | None = Field(default=None, description="修改后立即重算下一次执行时间")
    execution_time: datetime | None = Field(
        default=None, description="仅对一次性任务生效"
    )
    energy_cost: int | None = Field(default=None, ge=0)
    is_active: bool | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str | None) -> str | None:
        return None if value is None else _normalize_name(value)

    @field_validator("execution_time")
    @classmethod
    def _normalize_execution_time(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    def changes(self) -> dict[str, Any]:
        """显式提供且非 None 的字段"""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }
