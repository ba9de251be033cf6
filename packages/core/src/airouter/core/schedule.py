"""Schedule Calculator -- cron 表达式 -> 下一次执行时间

支持五段式表达式（分 时 日 月 周），每段为 `*`、整数字面量或 `*/step`。
语法校验在本模块完成，时间推算交给 croniter（日与周同时受限时按 OR 匹配）。
"""

from datetime import UTC, datetime

from croniter import croniter

from .exceptions import InvalidScheduleError

# (字段名, 最小值, 最大值)
_FIELDS: tuple[tuple[str, int, int], ...] = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day_of_month", 1, 31),
    ("month", 1, 12),
    ("day_of_week", 0, 6),
)


def utcnow() -> datetime:
    return datetime.now(UTC)


def _check_field(expression: str, token: str, name: str, lo: int, hi: int) -> None:
    if token == "*":
        return
    if token.startswith("*/"):
        step = token[2:]
        if not step.isdigit():
            raise InvalidScheduleError(expression, f"{name}: bad step {token!r}")
        if not 1 <= int(step) <= hi:
            raise InvalidScheduleError(expression, f"{name}: step out of range {token!r}")
        return
    if not token.isdigit():
        raise InvalidScheduleError(expression, f"{name}: unsupported token {token!r}")
    if not lo <= int(token) <= hi:
        raise InvalidScheduleError(
            expression, f"{name}: {token} not in {lo}-{hi}"
        )


def validate_schedule(expression: str) -> str:
    """校验 cron 表达式，返回规整后的表达式（单空格分隔）

    Raises:
        InvalidScheduleError: 段数不为 5 或任一字段非法
    """
    if not isinstance(expression, str):
        raise InvalidScheduleError(str(expression), "expression must be a string")
    tokens = expression.split()
    if len(tokens) != len(_FIELDS):
        raise InvalidScheduleError(
            expression, f"expected {len(_FIELDS)} fields, got {len(tokens)}"
        )
    for token, (name, lo, hi) in zip(tokens, _FIELDS, strict=True):
        _check_field(expression, token, name, lo, hi)
    return " ".join(tokens)


def next_run(expression: str, from_time: datetime) -> datetime:
    """计算严格晚于 from_time 的最近一次匹配时间（UTC）

    Args:
        expression: 五段式 cron 表达式
        from_time: 起算时间，naive 时间按 UTC 处理

    Returns:
        带 UTC 时区的 datetime

    Raises:
        InvalidScheduleError: 表达式非法
    """
    normalized = validate_schedule(expression)
    if from_time.tzinfo is None:
        start = from_time.replace(tzinfo=UTC)
    else:
        start = from_time.astimezone(UTC)
    try:
        result = croniter(normalized, start, day_or=True).get_next(datetime)
    except (ValueError, KeyError) as e:
        raise InvalidScheduleError(expression, str(e)) from e
    return result.astimezone(UTC)
