"""structlog 配置模块

dev 模式：彩色 console 输出
json 模式：每行一个 JSON 事件，带 service 字段
stdlib logging（uvicorn、httpx、aiosqlite）统一走同一个 ProcessorFormatter。
Logfire APM：LOGFIRE_SEND_TO_LOGFIRE=true 时启用，失败时降级为纯本地日志。
"""

import logging
import os

import structlog

SERVICE_NAME = "airouter-gateway"

# 第三方库默认日志过于频繁
_QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite")


def _add_service(
    logger: object, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog + stdlib logging

    Args:
        log_format: "json" 或 "dev"，默认读取 AIROUTER_LOG_FORMAT
        log_level: 日志级别，默认读取 AIROUTER_LOG_LEVEL
    """
    log_format = log_format or os.environ.get("AIROUTER_LOG_FORMAT", "dev")
    log_level = log_level or os.environ.get("AIROUTER_LOG_LEVEL", "INFO")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if log_format == "json":
        shared_processors.append(_add_service)
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logfire(app=None) -> bool:
    """Logfire 可选初始化

    LOGFIRE_SEND_TO_LOGFIRE=true 时启用（需要 LOGFIRE_TOKEN），
    同时对 FastAPI 与 httpx 调用做链路追踪。

    Returns:
        是否成功启用
    """
    send_to_logfire = os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower()
    if send_to_logfire != "true":
        return False
    try:
        import logfire

        logfire.configure(service_name=SERVICE_NAME)
        if app is not None:
            logfire.instrument_fastapi(app)
        logfire.instrument_httpx()
        return True
    except Exception as e:
        structlog.get_logger().warning(
            "logfire_init_failed",
            error=str(e),
            message="Logfire 初始化失败，降级为纯本地日志",
        )
        return False
