"""HTTP 错误映射

业务异常统一转换为 {"error": {"code": ..., "message": ...}} 响应。
"""

import structlog
from airouter.core.exceptions import AIRouterError
from airouter.executor import ExecutorError
from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()


class AccountRequiredError(AIRouterError):
    """请求缺少调用方账户标识"""

    code = "ACCOUNT_REQUIRED"

    def __init__(self) -> None:
        super().__init__("X-Account-Id header is required")


class TaskAccessDeniedError(AIRouterError):
    """调用方不是任务所有者"""

    code = "FORBIDDEN"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Not authorized to access task {task_id}")
        self.task_id = task_id


_STATUS_BY_CODE: dict[str, int] = {
    "INVALID_AMOUNT": 400,
    "INVALID_SCHEDULE": 400,
    "ACCOUNT_REQUIRED": 401,
    "INSUFFICIENT_ENERGY": 402,
    "FORBIDDEN": 403,
    "TASK_NOT_FOUND": 404,
    "INSUFFICIENT_STAKE": 409,
    "INSUFFICIENT_TOKEN_BALANCE": 409,
    "EXECUTOR_FAILURE": 502,
    "EXECUTOR_TIMEOUT": 504,
}


def error_response(code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=_STATUS_BY_CODE.get(code, 500),
        content={"error": {"code": code, "message": message}},
    )


async def _handle_error(request: Request, exc: Exception) -> JSONResponse:
    code = getattr(exc, "code", "INTERNAL_ERROR")
    message = getattr(exc, "message", str(exc))
    if _STATUS_BY_CODE.get(code, 500) >= 500:
        await log.awarning("request_failed", code=code, error=message)
    return error_response(code, message)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AIRouterError, _handle_error)
    app.add_exception_handler(ExecutorError, _handle_error)
