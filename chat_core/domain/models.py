"""统一的对话请求与结果数据模型。

本模块定义了与 Provider 交互时使用的标准数据结构：

- ChatMessage: 一条发送给模型的消息（system/user/assistant）。
- ChatRequest: 发给底层 LLM Provider 的完整请求。
- ChatResult: 从 Provider 解析后的统一响应结果。

Provider 适配器（如 AnthropicClient）只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass
from typing import List, Literal, Optional


# LLM 消息角色类型；system 只出现在请求里，不会写入会话
Role = Literal["system", "user", "assistant"]


@dataclass
class ChatMessage:
    """一条对话消息，既可用于请求，也可用于响应。

    - role: 消息角色，如 system/user/assistant。
    - content: 纯文本内容。
    """

    role: Role
    content: str


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    MessageExchange 会把 system prompt 与完整会话历史组装成 ChatRequest，
    再交给具体 ProviderClient 转换成厂商 API 的请求体。
    """

    provider: str  # 逻辑 Provider 名，如 "anthropic"
    model: str  # 逻辑模型名，如 "coding-chat"（再由 registry 映射为真实模型名）
    messages: List[ChatMessage]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatChoice:
    """单个候选回答（目前只用 index=0 的一条）。"""

    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次对话调用的最终结果。

    - provider / model: 逻辑名称。
    - choices: 候选回答。
    - usage: 可选的 token 使用统计。
    - raw: 原始响应 JSON，用于调试。
    """

    provider: str
    model: str
    choices: List[ChatChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None

    @property
    def text(self) -> str:
        return self.choices[0].message.content
