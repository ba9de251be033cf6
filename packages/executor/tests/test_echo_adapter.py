"""Echo 适配器单元测试"""

from airouter.executor import ActionExecutor, EchoActionExecutor, StaticTokenBalance


class TestEchoActionExecutor:
    async def test_echo_output(self):
        executor: ActionExecutor = EchoActionExecutor(delay_s=0)
        result = await executor.execute("agent-7", "hello")
        assert result.success is True
        assert result.output == "Echo: hello"
        assert result.data == {"agent_id": "agent-7"}

    async def test_health(self):
        assert await EchoActionExecutor().health_check() is True


class TestStaticTokenBalance:
    async def test_default_and_override(self):
        balances = StaticTokenBalance(default=100, balances={"alice": 5})
        assert await balances.get_stakeable_balance("alice") == 5
        assert await balances.get_stakeable_balance("bob") == 100

        balances.set_balance("bob", 7)
        assert await balances.get_stakeable_balance("bob") == 7
