"""Anthropic Messages API Provider 适配器。

- URL: {base_url}/messages
- 认证: x-api-key: <api_key>，并携带 anthropic-version 头
- system prompt 不放在 messages 里，而是单独的 system 字段

生成文本固定位于响应体的 content[0].text。
"""

from typing import Any, Dict, List, Optional

import httpx

from chat_core.config.settings import settings
from chat_core.domain.exceptions import (
    ApiError,
    NetworkError,
    RateLimitError,
    UpstreamCredentialError,
    UpstreamFormatError,
    UpstreamTimeoutError,
)
from chat_core.domain.models import ChatChoice, ChatMessage, ChatRequest, ChatResult, ChatUsage
from chat_core.providers.registry import ANTHROPIC_CONFIG, ModelConfig


class AnthropicClient:
    """Anthropic Provider 客户端实现，每次调用是一次阻塞的 HTTP 请求，不保留会话状态。"""

    name = "anthropic"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def chat(self, req: ChatRequest) -> ChatResult:
        api_key = getattr(self._settings, "anthropic_api_key", None)
        if not api_key:
            raise UpstreamCredentialError(code="MISSING_API_KEY", message="Missing API Key")
        model_cfg = ANTHROPIC_CONFIG.model(req.model)
        payload = self._build_payload(req, model_cfg)
        base = getattr(self._settings, "anthropic_base_url", None) or ANTHROPIC_CONFIG.base_url
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base.rstrip('/')}/messages",
                    json=payload,
                    headers={
                        "x-api-key": api_key,
                        "anthropic-version": getattr(self._settings, "anthropic_version", "2023-06-01"),
                        "Content-Type": "application/json",
                    },
                )
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(
                code="UPSTREAM_TIMEOUT",
                message=f"Completion request timed out: {e}",
            ) from e
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__) from e

        data = self._decode(resp)
        if resp.status_code == 429:
            raise RateLimitError(
                code="RATE_LIMIT",
                message=self._error_message(data, "Anthropic rate limit"),
                upstream_status=resp.status_code,
            )
        if not 200 <= resp.status_code < 300:
            raise ApiError(
                code="API_ERROR",
                message=self._error_message(data, "API Error"),
                upstream_status=resp.status_code,
            )
        if data is None:
            raise UpstreamFormatError(code="UPSTREAM_FORMAT_ERROR", message="Completion response is not valid JSON")
        return self._parse_response(data, req)

    # ---- 辅助方法 ----

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> Dict[str, Any]:
        system_parts: List[str] = []
        msgs: List[Dict[str, Any]] = []
        for m in req.messages:
            if m.role == "system":
                system_parts.append(m.content)
            else:
                msgs.append({"role": m.role, "content": m.content})
        payload: Dict[str, Any] = {
            "model": model_cfg.provider_model,
            "max_tokens": req.max_tokens or getattr(self._settings, "max_tokens", None) or model_cfg.max_tokens,
            "messages": msgs,
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        if req.temperature is not None:
            payload["temperature"] = req.temperature
        return payload

    def _parse_response(self, data: Any, req: ChatRequest) -> ChatResult:
        try:
            text = data["content"][0]["text"]
        except (TypeError, KeyError, IndexError) as e:
            raise UpstreamFormatError(
                code="UPSTREAM_FORMAT_ERROR",
                message="Completion response did not contain generated text",
            ) from e
        if not isinstance(text, str):
            raise UpstreamFormatError(
                code="UPSTREAM_FORMAT_ERROR",
                message="Completion response did not contain generated text",
            )
        usage = None
        usage_raw = data.get("usage")
        if isinstance(usage_raw, dict) and usage_raw:
            # token 统计只用于日志，格式不对就丢弃
            try:
                prompt_tokens = int(usage_raw.get("input_tokens", 0))
                completion_tokens = int(usage_raw.get("output_tokens", 0))
            except (TypeError, ValueError):
                pass
            else:
                usage = ChatUsage(
                    prompt_tokens=prompt_tokens,
                    completion_tokens=completion_tokens,
                    total_tokens=prompt_tokens + completion_tokens,
                )
        message = ChatMessage(role="assistant", content=text)
        return ChatResult(
            provider=self.name,
            model=req.model,
            choices=[ChatChoice(index=0, message=message, finish_reason=data.get("stop_reason"))],
            usage=usage,
            raw=data,
        )

    @staticmethod
    def _decode(resp) -> Optional[Any]:
        try:
            return resp.json()
        except ValueError:
            return None

    @staticmethod
    def _error_message(data: Any, default: str) -> str:
        if isinstance(data, dict):
            err = data.get("error")
            if isinstance(err, dict) and err.get("message"):
                return str(err["message"])
        return default
