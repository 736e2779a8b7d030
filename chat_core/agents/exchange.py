"""对话轮次编排模块。

一次 submit_turn 完成：追加用户消息 → 首轮自动生成标题 → 带完整历史
调用 Provider → 追加助手回复 → 整体保存。

轮次状态：Received → UserAppended → CompletionPending →
AssistantAppended+Persisted 或 Failed。只有成功分支会写盘
（persist_user_message_on_failure 打开时失败分支只保存用户消息）。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import uuid4
import logging
import time

from chat_core.config.settings import settings
from chat_core.conversations.repository import ConversationRepository
from chat_core.domain.conversation import Message
from chat_core.domain.exceptions import NotFoundError, UpstreamError, UpstreamFormatError, ValidationError
from chat_core.domain.models import ChatMessage, ChatRequest, ChatResult
from chat_core.infrastructure.logging.logger import logger
from chat_core.prompts import load_system_prompt
from chat_core.providers.base import ProviderClient


def derive_title(text: str, max_length: int = 30) -> str:
    """截取前 max_length 个字符作为标题，超长时追加省略号。"""
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


@dataclass
class ExchangeConfig:
    agent_type: str
    provider: str
    model: str
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    title_max_length: int = 30
    persist_user_message_on_failure: bool = False

    @classmethod
    def from_settings(cls, cfg=settings, provider: Optional[str] = None) -> "ExchangeConfig":
        return cls(
            agent_type="coding-assistant",
            provider=provider or cfg.default_provider,
            model=cfg.default_model,
            max_tokens=cfg.max_tokens,
            temperature=cfg.temperature,
            title_max_length=cfg.title_max_length,
            persist_user_message_on_failure=cfg.persist_user_message_on_failure,
        )


@dataclass
class TurnResult:
    role: str
    content: str
    conversation_id: str
    title: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "conversationId": self.conversation_id,
            "title": self.title,
        }


class MessageExchange:
    def __init__(
        self,
        repository: ConversationRepository,
        provider_client: ProviderClient,
        config: Optional[ExchangeConfig] = None,
        system_prompt: Optional[str] = None,
    ):
        self._repository = repository
        self._provider_client = provider_client
        self._config = config or ExchangeConfig.from_settings(provider=provider_client.name)
        self._system_prompt = system_prompt or load_system_prompt(self._config.agent_type)

    @property
    def config(self) -> ExchangeConfig:
        return self._config

    def submit_turn(self, conversation_id: str, user_text: Optional[str]) -> TurnResult:
        """执行一轮对话。

        Args:
            conversation_id: 会话ID
            user_text: 用户输入

        Returns:
            助手回复，附带会话ID与（可能刚生成的）标题

        Raises:
            ValidationError: 消息为空
            NotFoundError: 会话不存在
            UpstreamError: 补全服务调用失败，本轮不落盘
        """
        if not user_text:
            raise ValidationError(code="MESSAGE_REQUIRED", message="Message required")

        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "agent_type": self._config.agent_type,
            "conversation_id": conversation_id,
        }

        with self._repository.conversation_lock(conversation_id):
            conv = self._repository.get(conversation_id)

            user_msg = Message(role="user", content=user_text)
            title = None
            if not conv.messages and conv.title == self._repository.default_title:
                title = derive_title(user_text, self._config.title_max_length)
                self._log(logging.INFO, "Derived conversation title", log_ctx, title=title)
            history = list(conv.messages) + [user_msg]

            try:
                result = self._complete(history, log_ctx)
            except UpstreamError as e:
                self._log(logging.ERROR, "Completion failed", log_ctx, code=e.code, error=e.message)
                if self._config.persist_user_message_on_failure:
                    try:
                        self._repository.commit_turn(conversation_id, [user_msg], title)
                    except NotFoundError:
                        # 会话在补全期间被删除，仍然抛出原始的上游错误
                        self._log(logging.WARNING, "Conversation gone, user message not stored", log_ctx)
                    else:
                        self._log(logging.INFO, "Stored user message after failed completion", log_ctx)
                raise

            assistant_msg = Message(role="assistant", content=result.text)
            conv = self._repository.commit_turn(conversation_id, [user_msg, assistant_msg], title)

        self._log(
            logging.INFO,
            "Completed turn",
            log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
            message_count=len(conv.messages),
        )
        return TurnResult(
            role="assistant",
            content=assistant_msg.content,
            conversation_id=conv.id,
            title=conv.title,
        )

    def _complete(self, history: List[Message], log_ctx: Dict[str, Any]) -> ChatResult:
        chat_messages = [ChatMessage(role="system", content=self._system_prompt)]
        for m in history:
            chat_messages.append(ChatMessage(role=m.role, content=m.content))
        req = ChatRequest(
            provider=self._config.provider,
            model=self._config.model,
            messages=chat_messages,
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
        )

        self._log(
            logging.INFO,
            "Calling provider",
            log_ctx,
            provider=self._config.provider,
            model=self._config.model,
            message_count=len(chat_messages),
        )
        result = self._provider_client.chat(req)
        if not result.choices:
            raise UpstreamFormatError(code="UPSTREAM_FORMAT_ERROR", message="Completion returned no choices")

        if result.usage:
            self._log(
                logging.INFO,
                "Token usage",
                log_ctx,
                prompt_tokens=result.usage.prompt_tokens,
                completion_tokens=result.usage.completion_tokens,
                total_tokens=result.usage.total_tokens,
            )
        return result

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
