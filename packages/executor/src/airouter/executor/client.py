"""HTTP 客户端 -- Agent Engine 调用 + Token 余额查询

Agent Engine:  POST {base}/api/agents/{agent_id}/process  {"input": payload}
               -> {"success": bool, "result": ..., "error": str | null}
Token 服务:    GET  {base}/api/tokens/{account_id}/balance -> {"balance": number}
"""

import json
import math
import time

import httpx
import structlog

from .exceptions import AgentEngineUnreachableError, ExecutorFailureError
from .models import ActionResult

log = structlog.get_logger()

# 健康检查超时（硬编码，应快速响应）
HEALTH_CHECK_TIMEOUT_S = 5

# 连接类异常类型集合（转换为 AgentEngineUnreachableError）
_CONNECTION_ERROR_TYPES = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.NetworkError,
)


class HttpActionExecutor:
    """通过 HTTP 调用 Agent Engine 执行动作"""

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        api_key: str = "",
        timeout_s: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Agent Engine 基础 URL
            api_key: 访问密钥，非空时以 Bearer token 发送
            timeout_s: HTTP 超时（秒）；执行循环另有总超时
            transport: 自定义 transport（测试时注入 httpx.MockTransport）
        """
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout,
            transport=self._transport,
        )

    async def execute(self, agent_id: str, payload: str) -> ActionResult:
        """调用 Agent Engine 处理输入

        Returns:
            ActionResult（success=True）

        Raises:
            AgentEngineUnreachableError: 连接失败
            ExecutorFailureError: HTTP 错误状态、非法响应或 success=False
        """
        start_time = time.monotonic()
        log.debug("agent_call_start", agent_id=agent_id, input_length=len(payload))

        try:
            async with self._client(self._timeout_s) as client:
                resp = await client.post(
                    f"/api/agents/{agent_id}/process",
                    json={"input": payload},
                )
        except _CONNECTION_ERROR_TYPES as e:
            log.error("agent_call_unreachable", agent_id=agent_id, error=str(e))
            raise AgentEngineUnreachableError(self._base_url, e) from e

        duration_ms = int((time.monotonic() - start_time) * 1000)

        if resp.status_code >= 400:
            log.error(
                "agent_call_failed",
                agent_id=agent_id,
                status_code=resp.status_code,
                duration_ms=duration_ms,
            )
            raise ExecutorFailureError(
                f"Agent Engine 返回 {resp.status_code}: {resp.text[:200]}"
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise ExecutorFailureError(f"Agent Engine 响应不是合法 JSON: {e}") from e

        if not isinstance(body, dict) or not body.get("success", False):
            error = (body.get("error") if isinstance(body, dict) else None) or "agent reported failure"
            log.warning("agent_call_rejected", agent_id=agent_id, error=error)
            raise ExecutorFailureError(str(error))

        result = body.get("result")
        # 非字符串结果以 JSON 文本保留在 output 中，dict 额外放入 data
        if result is None or isinstance(result, str):
            output = result or ""
        else:
            output = json.dumps(result, ensure_ascii=False)
        data = result if isinstance(result, dict) else {}

        log.info("agent_call_completed", agent_id=agent_id, duration_ms=duration_ms)
        return ActionResult(
            success=True,
            output=output,
            data=data,
            duration_ms=duration_ms,
        )

    async def health_check(self) -> bool:
        """检查 Agent Engine 可达性

        发送 GET {base_url}/health 请求。此方法不抛出异常。
        """
        try:
            async with self._client(HEALTH_CHECK_TIMEOUT_S) as client:
                resp = await client.get("/health")
                return resp.status_code == 200
        except Exception as e:
            log.debug("health_check_failed", url=self._base_url, error=str(e))
            return False


class HttpTokenBalanceClient:
    """查询账户可质押 token 余额"""

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        timeout_s: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._transport = transport

    async def get_stakeable_balance(self, account_id: str) -> int:
        """返回向下取整后的 token 余额

        Raises:
            AgentEngineUnreachableError: 服务不可达
            ExecutorFailureError: HTTP 错误状态，或响应缺少 balance / balance 不是数字
        """
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout_s,
                transport=self._transport,
            ) as client:
                resp = await client.get(f"/api/tokens/{account_id}/balance")
                resp.raise_for_status()
                balance = int(math.floor(float(resp.json()["balance"])))
        except _CONNECTION_ERROR_TYPES as e:
            raise AgentEngineUnreachableError(self._base_url, e) from e
        except (httpx.HTTPStatusError, KeyError, TypeError, ValueError, OverflowError) as e:
            log.error("token_balance_failed", account_id=account_id, error=str(e))
            raise ExecutorFailureError(f"Token 余额查询失败: {e}") from e

        return max(balance, 0)
