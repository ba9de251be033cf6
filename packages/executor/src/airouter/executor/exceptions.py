"""Executor 异常体系

执行失败与执行超时都会被记录到任务上（status=failed），
只有 run-now 请求才会把异常抛给调用方。
"""


class ExecutorError(Exception):
    """Executor 包基础异常"""

    code = "EXECUTOR_ERROR"

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过下一次调度恢复
        """
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


class ExecutorFailureError(ExecutorError):
    """Action Executor 抛出异常或返回失败结果"""

    code = "EXECUTOR_FAILURE"


class AgentEngineUnreachableError(ExecutorFailureError):
    """Agent Engine 不可达（连接失败、DNS 解析失败等）"""

    def __init__(self, engine_url: str, original_error: Exception) -> None:
        """
        Args:
            engine_url: 尝试连接的 Agent Engine 地址
            original_error: 原始异常
        """
        super().__init__(
            f"Agent Engine 不可达: {engine_url} -- {original_error}",
            recoverable=True,
        )
        self.engine_url = engine_url
        self.original_error = original_error


class ExecutorTimeoutError(ExecutorError):
    """执行超过允许时长"""

    code = "EXECUTOR_TIMEOUT"

    def __init__(self, agent_id: str, timeout_s: float) -> None:
        super().__init__(f"Execution timed out after {timeout_s}s (agent {agent_id})")
        self.agent_id = agent_id
        self.timeout_s = timeout_s
