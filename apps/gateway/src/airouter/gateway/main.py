"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭、Action Executor 选择、
能量账本与执行循环装配、周期任务（执行 tick / 任务清理 / 质押奖励）启停。
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from airouter.core.config import (
    RETENTION_SWEEP_INTERVAL_S,
    STAKING_REWARD_INTERVAL_S,
    TICK_INTERVAL_S,
    get_db_path,
    scheduler_enabled,
)
from airouter.core.ledger import EnergyLedger, TokenBalanceChecker
from airouter.core.retention import RetentionSweeper
from airouter.core.store import StoreGroup, create_store_group
from airouter.executor import (
    ActionExecutor,
    EchoActionExecutor,
    ExecutorConfig,
    HttpActionExecutor,
    HttpTokenBalanceClient,
    StaticTokenBalance,
    load_executor_config,
)
from fastapi import FastAPI

from .errors import register_error_handlers
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import energy, health, tasks
from .services.scheduler import ExecutionLoop, run_periodic

log = structlog.get_logger()


def build_collaborators(
    config: ExecutorConfig,
) -> tuple[ActionExecutor, TokenBalanceChecker]:
    """按运行模式创建 Action Executor 与 token 余额查询"""
    if config.mode == "http":
        executor = HttpActionExecutor(
            base_url=config.agent_engine_url,
            api_key=config.agent_engine_key.get_secret_value(),
            timeout_s=config.timeout_s,
        )
        token_balance = HttpTokenBalanceClient(base_url=config.token_service_url)
        log.info(
            "executor_initialized",
            mode="http",
            agent_engine_url=config.agent_engine_url,
            timeout_s=config.timeout_s,
        )
    else:
        executor = EchoActionExecutor()
        token_balance = StaticTokenBalance(default=config.echo_token_balance)
        log.info("executor_initialized", mode="echo")
    return executor, token_balance


def init_app_state(
    app: FastAPI,
    store_group: StoreGroup,
    executor: ActionExecutor,
    token_balance: TokenBalanceChecker,
    timeout_s: float,
) -> None:
    """装配账本、执行循环、清理器到 app.state"""
    ledger = EnergyLedger(store_group, token_balance)
    app.state.store_group = store_group
    app.state.executor = executor
    app.state.ledger = ledger
    app.state.execution_loop = ExecutionLoop(
        store_group, ledger, executor, timeout_s=timeout_s
    )
    app.state.retention_sweeper = RetentionSweeper(store_group)
    app.state.background_tasks = []


def start_background_jobs(app: FastAPI) -> list[asyncio.Task]:
    """启动三个周期任务；质押奖励在一个完整周期后才首次发放"""
    jobs = [
        asyncio.create_task(
            run_periodic("execution_tick", app.state.execution_loop.tick, TICK_INTERVAL_S)
        ),
        asyncio.create_task(
            run_periodic(
                "retention_sweep",
                app.state.retention_sweeper.sweep,
                RETENTION_SWEEP_INTERVAL_S,
            )
        ),
        asyncio.create_task(
            run_periodic(
                "staking_rewards",
                app.state.ledger.apply_recurring_rewards,
                STAKING_REWARD_INTERVAL_S,
                run_immediately=False,
            )
        ),
    ]
    app.state.background_tasks = jobs
    return jobs


async def stop_background_jobs(app: FastAPI) -> None:
    jobs = getattr(app.state, "background_tasks", [])
    for job in jobs:
        job.cancel()
    await asyncio.gather(*jobs, return_exceptions=True)
    app.state.background_tasks = []


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 与周期任务，关闭时取消任务并关闭连接"""
    store_group = await create_store_group(get_db_path())
    config = load_executor_config()
    app.state.executor_config = config
    executor, token_balance = build_collaborators(config)
    init_app_state(app, store_group, executor, token_balance, config.timeout_s)

    if scheduler_enabled():
        start_background_jobs(app)
        log.info("scheduler_started", tick_interval_s=TICK_INTERVAL_S)
    else:
        log.info("scheduler_disabled")

    yield

    await stop_background_jobs(app)
    if hasattr(app.state, "store_group") and app.state.store_group:
        await app.state.store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="AIRouter Scheduler Gateway",
        version="0.1.0",
        description="能量门控的定时任务调度 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()
    setup_logfire(app)

    register_error_handlers(app)

    # 注册路由
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(energy.router, tags=["energy"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
