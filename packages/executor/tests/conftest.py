"""Executor 包测试 fixtures"""

import json

import httpx
import pytest


@pytest.fixture
def agent_requests() -> list[httpx.Request]:
    """记录 Mock Agent Engine 收到的请求"""
    return []


@pytest.fixture
def agent_transport(agent_requests: list[httpx.Request]) -> httpx.MockTransport:
    """模拟 Agent Engine：agent 'broken' 返回 500，'reject' 返回 success=false"""

    def handler(request: httpx.Request) -> httpx.Response:
        agent_requests.append(request)
        if request.url.path == "/health":
            return httpx.Response(200, json={"status": "ok"})
        if request.url.path == "/api/agents/broken/process":
            return httpx.Response(500, text="internal error")
        if request.url.path == "/api/agents/reject/process":
            return httpx.Response(200, json={"success": False, "error": "unsupported intent"})
        body = json.loads(request.content)
        return httpx.Response(
            200,
            json={"success": True, "result": {"echo": body["input"]}},
        )

    return httpx.MockTransport(handler)
