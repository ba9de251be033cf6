"""AIRouter Executor -- Action Executor 与 Token 余额协作方

packages/executor 的公开接口导出。
"""

# 核心组件
from .client import HttpActionExecutor, HttpTokenBalanceClient

# 配置
from .config import ExecutorConfig, load_executor_config
from .echo_adapter import EchoActionExecutor, StaticTokenBalance

# 异常
from .exceptions import (
    AgentEngineUnreachableError,
    ExecutorError,
    ExecutorFailureError,
    ExecutorTimeoutError,
)

# 数据模型
from .models import ActionResult
from .protocols import ActionExecutor

__all__ = [
    "ActionResult",
    "ActionExecutor",
    "HttpActionExecutor",
    "HttpTokenBalanceClient",
    "EchoActionExecutor",
    "StaticTokenBalance",
    "ExecutorConfig",
    "load_executor_config",
    "ExecutorError",
    "ExecutorFailureError",
    "ExecutorTimeoutError",
    "AgentEngineUnreachableError",
]
