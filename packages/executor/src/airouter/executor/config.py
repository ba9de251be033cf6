"""ExecutorConfig -- Action Executor 配置加载

从环境变量加载 Agent Engine / Token 服务地址与运行模式。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()


class ExecutorConfig(BaseModel):
    """Executor 包配置 -- 从环境变量加载

    环境变量:
        AIROUTER_EXECUTOR_MODE: 运行模式（http/echo）
        AIROUTER_AGENT_ENGINE_URL: Agent Engine 地址（默认 http://localhost:3000）
        AIROUTER_AGENT_ENGINE_KEY: Agent Engine 访问密钥
        AIROUTER_TOKEN_SERVICE_URL: Token 余额服务地址
        AIROUTER_EXECUTION_TIMEOUT_S: 单次执行超时（秒，默认 30）
        AIROUTER_ECHO_TOKEN_BALANCE: echo 模式下的固定可质押余额
    """

    mode: Literal["http", "echo"] = Field(
        default="http",
        description="运行模式：http / echo",
    )
    agent_engine_url: str = Field(
        default="http://localhost:3000",
        description="Agent Engine 基础 URL",
    )
    agent_engine_key: SecretStr = Field(
        default=SecretStr(""),
        description="Agent Engine 访问密钥",
    )
    token_service_url: str = Field(
        default="http://localhost:3000",
        description="Token 余额服务基础 URL",
    )
    timeout_s: float = Field(
        default=30,
        gt=0,
        description="单次执行超时（秒）",
    )
    echo_token_balance: int = Field(
        default=1000,
        ge=0,
        description="echo 模式下每个账户的可质押余额",
    )


def _read_number(env_var: str, cast, fallback, kwargs: dict, key: str) -> None:
    if val := os.environ.get(env_var):
        try:
            kwargs[key] = cast(val)
        except ValueError:
            log.warning(
                "invalid_executor_config",
                env_var=env_var,
                value=val,
                fallback=fallback,
            )
            # 使用默认值，不阻塞启动


def load_executor_config() -> ExecutorConfig:
    """从环境变量加载 Executor 配置

    Returns:
        ExecutorConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("AIROUTER_EXECUTOR_MODE"):
        kwargs["mode"] = val

    if val := os.environ.get("AIROUTER_AGENT_ENGINE_URL"):
        kwargs["agent_engine_url"] = val

    if val := os.environ.get("AIROUTER_AGENT_ENGINE_KEY"):
        kwargs["agent_engine_key"] = SecretStr(val)

    if val := os.environ.get("AIROUTER_TOKEN_SERVICE_URL"):
        kwargs["token_service_url"] = val

    _read_number("AIROUTER_EXECUTION_TIMEOUT_S", float, 30, kwargs, "timeout_s")
    _read_number("AIROUTER_ECHO_TOKEN_BALANCE", int, 1000, kwargs, "echo_token_balance")

    return ExecutorConfig(**kwargs)
