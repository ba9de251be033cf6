"""健康检查路由

GET /health: 进程存活即返回 200。
GET /ready:  依赖就绪检查；profile=full 时额外探测 Action Executor。
"""

import structlog
from fastapi import APIRouter, Query, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


async def _sqlite_status(request: Request) -> str:
    try:
        cursor = await request.app.state.store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
    except Exception as e:
        return f"error: {e}"
    return "ok"


def _scheduler_status(request: Request) -> str:
    """disabled：未启动周期任务；stopped：任一周期任务已退出"""
    jobs = getattr(request.app.state, "background_tasks", [])
    if not jobs:
        return "disabled"
    if any(job.done() for job in jobs):
        return "stopped"
    return "running"


async def _executor_status(request: Request) -> str:
    executor = getattr(request.app.state, "executor", None)
    if executor is None:
        return "unreachable"
    try:
        healthy = await executor.health_check()
    except Exception as e:
        log.warning("executor_probe_failed", error=str(e))
        return "unreachable"
    return "ok" if healthy else "unreachable"


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/ready")
async def ready(
    request: Request,
    profile: str | None = Query(
        default=None,
        description="core（默认）：数据库与周期任务；full：再探测 Action Executor",
    ),
):
    """就绪检查

    任一项异常返回 503，scheduler=disabled 与 executor=skipped 不算异常。
    """
    effective_profile = profile or "core"

    checks = {
        "sqlite": await _sqlite_status(request),
        "scheduler": _scheduler_status(request),
        "executor": (
            await _executor_status(request) if effective_profile == "full" else "skipped"
        ),
    }
    healthy_values = {"ok", "running", "disabled", "skipped"}
    all_ok = all(value in healthy_values for value in checks.values())

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "profile": effective_profile,
            "checks": checks,
        },
    )
