"""Echo 适配器 -- 本地运行与测试用的 Action Executor / Token 余额实现

EchoActionExecutor 把输入原样回显；StaticTokenBalance 为每个账户返回固定余额。
"""

import asyncio
import time

from .models import ActionResult


class EchoActionExecutor:
    """回声执行器，不依赖外部 Agent Engine"""

    def __init__(self, delay_s: float = 0.01) -> None:
        self._delay_s = delay_s

    async def execute(self, agent_id: str, payload: str) -> ActionResult:
        """返回 "Echo: {payload}" 格式的结果"""
        start_time = time.monotonic()

        # 模拟少量延迟
        await asyncio.sleep(self._delay_s)

        duration_ms = int((time.monotonic() - start_time) * 1000)
        return ActionResult(
            success=True,
            output=f"Echo: {payload}",
            data={"agent_id": agent_id},
            duration_ms=duration_ms,
        )

    async def health_check(self) -> bool:
        return True


class StaticTokenBalance:
    """固定 token 余额，可按账户覆盖"""

    def __init__(self, default: int = 0, balances: dict[str, int] | None = None) -> None:
        self._default = default
        self._balances = dict(balances or {})

    def set_balance(self, account_id: str, balance: int) -> None:
        self._balances[account_id] = balance

    async def get_stakeable_balance(self, account_id: str) -> int:
        return self._balances.get(account_id, self._default)
