import pytest

from chat_core.providers import create_provider
from chat_core.providers.anthropic_client import AnthropicClient
from chat_core.providers.registry import ANTHROPIC_CONFIG, get_provider_config


def test_create_provider_default(monkeypatch):
    class DummySettings:
        default_provider = "anthropic"
        anthropic_api_key = "sk-ant-test-key"
        http_timeout = 1.0

    monkeypatch.setattr("chat_core.providers.settings", DummySettings())
    provider = create_provider()
    assert isinstance(provider, AnthropicClient)


def test_create_provider_unknown():
    with pytest.raises(KeyError):
        create_provider("kimi")


def test_registry_lookup():
    assert get_provider_config("Anthropic") is ANTHROPIC_CONFIG
    assert ANTHROPIC_CONFIG.model("coding-chat").provider_model == "claude-3-5-sonnet-20240620"
    # 未登记的逻辑名按厂商模型 ID 透传
    assert ANTHROPIC_CONFIG.model("claude-3-5-haiku-20241022").provider_model == "claude-3-5-haiku-20241022"
