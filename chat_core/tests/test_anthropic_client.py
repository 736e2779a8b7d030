import httpx
import pytest

from chat_core.domain.exceptions import (
    ApiError,
    NetworkError,
    RateLimitError,
    UpstreamCredentialError,
    UpstreamFormatError,
    UpstreamTimeoutError,
)
from chat_core.domain.models import ChatMessage, ChatRequest
from chat_core.providers.anthropic_client import AnthropicClient


class SettingsStub:
    anthropic_api_key = "sk-ant-test-key"
    anthropic_base_url = "https://api.anthropic.com/v1"
    anthropic_version = "2023-06-01"
    http_timeout = 1.0
    max_tokens = 1000


def _request():
    return ChatRequest(
        provider="anthropic",
        model="coding-chat",
        messages=[
            ChatMessage(role="system", content="be helpful"),
            ChatMessage(role="user", content="hi"),
            ChatMessage(role="assistant", content="hello"),
            ChatMessage(role="user", content="reverse a string?"),
        ],
    )


class Resp:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


def _fake_client(monkeypatch, response=None, error=None):
    calls = []

    class Client:
        def __init__(self, *a, **kw):
            calls.append(("init", kw))

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None):
            calls.append(("post", url, json, headers))
            if error is not None:
                raise error
            return response

    monkeypatch.setattr("httpx.Client", Client)
    return calls


def test_chat_success(monkeypatch):
    body = {
        "id": "msg_1",
        "content": [{"type": "text", "text": "Use two pointers..."}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 12, "output_tokens": 5},
    }
    calls = _fake_client(monkeypatch, response=Resp(200, body))
    res = AnthropicClient(SettingsStub()).chat(_request())

    assert res.text == "Use two pointers..."
    assert res.choices[0].finish_reason == "end_turn"
    assert res.usage.total_tokens == 17

    _, url, payload, headers = calls[1]
    assert url == "https://api.anthropic.com/v1/messages"
    assert headers["x-api-key"] == "sk-ant-test-key"
    assert headers["anthropic-version"] == "2023-06-01"
    assert payload["model"] == "claude-3-5-sonnet-20240620"
    assert payload["max_tokens"] == 1000
    assert payload["system"] == "be helpful"
    assert payload["messages"] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
        {"role": "user", "content": "reverse a string?"},
    ]
    assert "temperature" not in payload


@pytest.mark.parametrize(
    "usage",
    [
        {"input_tokens": "n/a", "output_tokens": 5},
        {"input_tokens": None},
        "bogus",
        [1, 2],
    ],
)
def test_malformed_usage(monkeypatch, usage):
    body = {"content": [{"type": "text", "text": "hi"}], "usage": usage}
    _fake_client(monkeypatch, response=Resp(200, body))
    res = AnthropicClient(SettingsStub()).chat(_request())
    assert res.text == "hi"
    assert res.usage is None


def test_missing_api_key(monkeypatch):
    class NoKey(SettingsStub):
        anthropic_api_key = None

    calls = _fake_client(monkeypatch, response=Resp(200, {}))
    with pytest.raises(UpstreamCredentialError) as exc:
        AnthropicClient(NoKey()).chat(_request())
    assert exc.value.code == "MISSING_API_KEY"
    assert calls == []


def test_api_error_surfaces_service_message(monkeypatch):
    body = {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}
    _fake_client(monkeypatch, response=Resp(529, body))
    with pytest.raises(ApiError) as exc:
        AnthropicClient(SettingsStub()).chat(_request())
    assert exc.value.message == "Overloaded"
    assert exc.value.extra["upstream_status"] == 529
    assert exc.value.http_status == 500


def test_api_error_without_body(monkeypatch):
    _fake_client(monkeypatch, response=Resp(502, ValueError("no json")))
    with pytest.raises(ApiError) as exc:
        AnthropicClient(SettingsStub()).chat(_request())
    assert exc.value.message == "API Error"


def test_rate_limit(monkeypatch):
    _fake_client(monkeypatch, response=Resp(429, {"error": {"message": "slow down"}}))
    with pytest.raises(RateLimitError) as exc:
        AnthropicClient(SettingsStub()).chat(_request())
    assert exc.value.message == "slow down"


def test_network_error(monkeypatch):
    _fake_client(monkeypatch, error=httpx.ConnectError("connection refused"))
    with pytest.raises(NetworkError) as exc:
        AnthropicClient(SettingsStub()).chat(_request())
    assert not isinstance(exc.value, UpstreamTimeoutError)
    assert exc.value.code == "NETWORK_ERROR"


def test_timeout_is_distinct(monkeypatch):
    _fake_client(monkeypatch, error=httpx.ReadTimeout("timed out"))
    with pytest.raises(UpstreamTimeoutError) as exc:
        AnthropicClient(SettingsStub()).chat(_request())
    assert exc.value.code == "UPSTREAM_TIMEOUT"


@pytest.mark.parametrize(
    "body",
    [
        {"content": []},
        {"content": [{"type": "tool_use", "id": "t"}]},
        {"unexpected": True},
        ValueError("not json"),
    ],
)
def test_malformed_response(monkeypatch, body):
    _fake_client(monkeypatch, response=Resp(200, body))
    with pytest.raises(UpstreamFormatError):
        AnthropicClient(SettingsStub()).chat(_request())
