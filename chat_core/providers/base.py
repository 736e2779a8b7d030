"""Provider 抽象接口。

MessageExchange 不直接依赖具体厂商的 HTTP 调用，而是依赖此协议：

- 每个厂商实现一个 ProviderClient（如 AnthropicClient）。
- 负责：将 ChatRequest 转成具体 API 请求，并把响应 JSON 解析为 ChatResult。
- 失败时抛出 chat_core.domain.exceptions 中的 UpstreamError 子类。
"""

from typing import Protocol
from chat_core.domain.models import ChatRequest, ChatResult


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志。
    - chat(req): 执行一次阻塞的对话调用，返回统一的 ChatResult。
    """

    name: str

    def chat(self, req: ChatRequest) -> ChatResult:
        ...
