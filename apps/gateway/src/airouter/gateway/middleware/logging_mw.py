"""LoggingMiddleware -- 请求级日志上下文

request_id 沿用上游传入的 X-Request-ID，没有则生成 ULID；
调用方账户一并绑定，任务执行日志可按账户检索。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"


def _bind_request_context(request: Request) -> str:
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(ULID())
    context = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
    }
    if account_id := request.headers.get("X-Account-Id"):
        context["account_id"] = account_id

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**context)
    return request_id


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = _bind_request_context(request)
        log = structlog.get_logger()
        started = time.monotonic()
        await log.ainfo("request_started")

        response = await call_next(request)

        await log.ainfo(
            "request_completed",
            status_code=response.status_code,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
