"""Core 异常体系

能量账本、调度计算、任务存储的业务异常。
HTTP 层按异常类型映射错误码，执行循环按 recoverable 决定是否继续。
"""


class AIRouterError(Exception):
    """AIRouter 基础异常"""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否属于可预期的业务结果（不影响其它任务 / 请求）
        """
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


class InvalidAmountError(AIRouterError):
    """金额非法（必须为正整数）"""

    code = "INVALID_AMOUNT"

    def __init__(self, amount: object) -> None:
        super().__init__(f"Amount must be a positive integer, got {amount!r}")
        self.amount = amount


class InsufficientEnergyError(AIRouterError):
    """能量不足（账户不存在或余额小于所需金额）"""

    code = "INSUFFICIENT_ENERGY"

    def __init__(self, account_id: str, required: int, balance: int = 0) -> None:
        super().__init__(
            f"Insufficient energy for {account_id}: required {required}, balance {balance}"
        )
        self.account_id = account_id
        self.required = required
        self.balance = balance


class InsufficientStakeError(AIRouterError):
    """解除质押数量超过已质押数量"""

    code = "INSUFFICIENT_STAKE"

    def __init__(self, account_id: str, requested: int, staked: int) -> None:
        super().__init__(
            f"Insufficient stake for {account_id}: requested {requested}, staked {staked}"
        )
        self.account_id = account_id
        self.requested = requested
        self.staked = staked


class InsufficientTokenBalanceError(AIRouterError):
    """链上可质押 token 余额不足"""

    code = "INSUFFICIENT_TOKEN_BALANCE"

    def __init__(self, account_id: str, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient token balance for {account_id}: "
            f"requested {requested}, available {available}"
        )
        self.account_id = account_id
        self.requested = requested
        self.available = available


class InvalidScheduleError(AIRouterError):
    """cron 表达式格式非法

    属于该任务的配置错误，不做重试。
    """

    code = "INVALID_SCHEDULE"

    def __init__(self, expression: str, reason: str) -> None:
        super().__init__(f"Invalid schedule {expression!r}: {reason}", recoverable=False)
        self.expression = expression
        self.reason = reason


class TaskNotFoundError(AIRouterError):
    """任务不存在"""

    code = "TASK_NOT_FOUND"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task with id {task_id} does not exist")
        self.task_id = task_id
