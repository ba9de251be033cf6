"""ExecutorConfig + load_executor_config 单元测试

验证环境变量映射、默认值与非法数值降级。
"""

import pytest
from airouter.executor.config import ExecutorConfig, load_executor_config
from pydantic import SecretStr, ValidationError

_ENV_VARS = (
    "AIROUTER_EXECUTOR_MODE",
    "AIROUTER_AGENT_ENGINE_URL",
    "AIROUTER_AGENT_ENGINE_KEY",
    "AIROUTER_TOKEN_SERVICE_URL",
    "AIROUTER_EXECUTION_TIMEOUT_S",
    "AIROUTER_ECHO_TOKEN_BALANCE",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestExecutorConfig:
    """ExecutorConfig 数据模型测试"""

    def test_default_values(self):
        config = ExecutorConfig()
        assert config.mode == "http"
        assert config.agent_engine_url == "http://localhost:3000"
        assert config.agent_engine_key.get_secret_value() == ""
        assert config.timeout_s == 30
        assert config.echo_token_balance == 1000

    def test_custom_values(self):
        config = ExecutorConfig(
            mode="echo",
            agent_engine_url="http://engine:8080",
            agent_engine_key=SecretStr("sk-test"),
            timeout_s=2.5,
        )
        assert config.mode == "echo"
        assert config.agent_engine_key.get_secret_value() == "sk-test"
        assert config.timeout_s == 2.5

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            ExecutorConfig(timeout_s=0)

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValidationError):
            ExecutorConfig(mode="grpc")


class TestLoadExecutorConfig:
    """load_executor_config() 环境变量映射测试"""

    def test_default_when_no_env(self, clean_env):
        config = load_executor_config()
        assert config == ExecutorConfig()

    def test_env_mapping(self, clean_env):
        clean_env.setenv("AIROUTER_EXECUTOR_MODE", "echo")
        clean_env.setenv("AIROUTER_AGENT_ENGINE_URL", "http://engine:9000")
        clean_env.setenv("AIROUTER_AGENT_ENGINE_KEY", "secret")
        clean_env.setenv("AIROUTER_TOKEN_SERVICE_URL", "http://tokens:9001")
        clean_env.setenv("AIROUTER_EXECUTION_TIMEOUT_S", "12.5")
        clean_env.setenv("AIROUTER_ECHO_TOKEN_BALANCE", "42")

        config = load_executor_config()
        assert config.mode == "echo"
        assert config.agent_engine_url == "http://engine:9000"
        assert config.agent_engine_key.get_secret_value() == "secret"
        assert config.token_service_url == "http://tokens:9001"
        assert config.timeout_s == 12.5
        assert config.echo_token_balance == 42

    def test_invalid_number_falls_back(self, clean_env):
        clean_env.setenv("AIROUTER_EXECUTION_TIMEOUT_S", "soon")
        clean_env.setenv("AIROUTER_ECHO_TOKEN_BALANCE", "lots")
        config = load_executor_config()
        assert config.timeout_s == 30
        assert config.echo_token_balance == 1000
