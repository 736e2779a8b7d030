"""对外服务模块。

ChatService 显式持有存储句柄、仓库和对话编排器，由 build_service 统一装配；
HTTP 层或其他调用方只依赖这里暴露的方法。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from chat_core.agents.exchange import ExchangeConfig, MessageExchange
from chat_core.config.settings import Settings, settings as default_settings
from chat_core.conversations.repository import ConversationRepository
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.json_store import JsonFileStore
from chat_core.providers import create_provider
from chat_core.providers.base import ProviderClient


@dataclass
class ChatService:
    store: JsonFileStore
    repository: ConversationRepository
    exchange: MessageExchange

    def list_conversations(self) -> List[Dict[str, Any]]:
        """列出所有会话摘要，最近更新的在前。"""
        return [s.to_dict() for s in self.repository.list_summaries()]

    def get_conversation(self, conversation_id: str) -> Dict[str, Any]:
        return self.repository.get(conversation_id).to_dict()

    def create_conversation(self) -> Dict[str, Any]:
        return self.repository.create().to_dict()

    def rename_conversation(self, conversation_id: str, title: Optional[str]) -> Dict[str, Any]:
        return self.repository.rename(conversation_id, title).to_dict()

    def delete_conversation(self, conversation_id: str) -> Dict[str, Any]:
        return {"success": self.repository.delete(conversation_id)}

    def send_message(self, conversation_id: str, message: Optional[str]) -> Dict[str, Any]:
        """发送一条用户消息并返回助手回复。

        Raises:
            各种 domain.exceptions 中定义的异常
        """
        return self.exchange.submit_turn(conversation_id, message).to_dict()


def build_service(
    cfg: Optional[Settings] = None,
    provider_client: Optional[ProviderClient] = None,
    store: Optional[JsonFileStore] = None,
) -> ChatService:
    """按配置装配 ChatService，测试时可注入 provider_client 与 store。"""
    cfg = cfg or default_settings
    store = store or JsonFileStore(cfg.storage_path, strict=cfg.storage_strict)
    repository = ConversationRepository(store, default_title=cfg.default_title)
    provider_client = provider_client or create_provider(cfg=cfg)
    exchange = MessageExchange(
        repository,
        provider_client,
        config=ExchangeConfig.from_settings(cfg, provider=provider_client.name),
    )
    logger.info(
        "Chat service ready",
        extra={"extra": {"storage_path": str(store.path), "provider": provider_client.name}},
    )
    return ChatService(store=store, repository=repository, exchange=exchange)
