"""ActionExecutor 接口定义

执行循环只依赖此接口；HTTP 与 echo 两种实现均满足它。
"""

from typing import Any, Protocol


class ActionExecutor(Protocol):
    """Action Executor 接口

    返回任意结果对象，抛出异常即视为执行失败。
    """

    async def execute(self, agent_id: str, payload: str) -> Any: ...

    async def health_check(self) -> bool: ...
