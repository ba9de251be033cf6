"""TraceMiddleware -- 为任务操作绑定 trace_id

从 /api/tasks/{task_id}[/run] 路径中提取 task_id，生成 trace-{task_id}，
使同一任务的 HTTP 日志与执行循环日志可以关联。
"""

import re

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ULID：26 位 Crockford Base32
_TASK_PATH = re.compile(r"/api/tasks/([0-9A-HJKMNP-TV-Z]{26})(?:/|$)")


def trace_id_for_path(path: str) -> str | None:
    match = _TASK_PATH.search(path)
    if match is None:
        return None
    return f"trace-{match.group(1)}"


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        trace_id = trace_id_for_path(request.url.path)
        if trace_id:
            structlog.contextvars.bind_contextvars(trace_id=trace_id)

        return await call_next(request)
