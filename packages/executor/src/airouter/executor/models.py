"""数据模型 -- ActionResult

Agent Engine 处理结果。success=False 视为执行失败。
"""

from typing import Any

from pydantic import BaseModel, Field


class ActionResult(BaseModel):
    """一次 agent 动作的执行结果"""

    success: bool = Field(default=True, description="是否执行成功")
    output: str = Field(default="", description="文本输出")
    data: dict[str, Any] = Field(default_factory=dict, description="结构化结果")
    error: str | None = Field(default=None, description="失败原因")
    duration_ms: int = Field(default=0, ge=0, description="端到端耗时（毫秒）")
