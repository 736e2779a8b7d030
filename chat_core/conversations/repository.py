"""会话仓库。

每个操作都在存储锁内完成 load → 读取/修改 →（按需）save，
不在进程内缓存会话集合。
"""

from datetime import datetime, timezone
from typing import Callable, ContextManager, List, Optional, Sequence
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.conversation import (
    Conversation,
    ConversationStore,
    ConversationSummary,
    Message,
    StoreDocument,
)
from chat_core.domain.exceptions import NotFoundError
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.locks import KeyedLock


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_conversation_id() -> str:
    return f"c-{uuid4().hex}"


class ConversationRepository:
    def __init__(
        self,
        store: ConversationStore,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
        default_title: Optional[str] = None,
    ):
        self._store = store
        self._clock = clock or _utcnow
        self._id_factory = id_factory or _new_conversation_id
        self.default_title = default_title or settings.default_title
        self._conversation_locks = KeyedLock()

    @property
    def store(self) -> ConversationStore:
        return self._store

    def conversation_lock(self, conversation_id: str) -> ContextManager[None]:
        """同一会话的对话轮次互斥。"""
        return self._conversation_locks.hold(conversation_id)

    def list_summaries(self) -> List[ConversationSummary]:
        """按 updated_at 倒序返回摘要，时间相同则保持存储顺序。"""
        with self._store.lock:
            doc = self._store.load()
        summaries = [ConversationSummary(id=c.id, title=c.title, updated_at=c.updated_at) for c in doc.conversations]
        summaries.sort(key=lambda s: s.updated_at, reverse=True)
        return summaries

    def get(self, conversation_id: str) -> Conversation:
        with self._store.lock:
            doc = self._store.load()
        return self._require(doc, conversation_id)

    def create(self) -> Conversation:
        with self._store.lock:
            doc = self._store.load()
            existing = {c.id for c in doc.conversations}
            cid = self._id_factory()
            while cid in existing:
                cid = self._id_factory()
            now = self._clock()
            conv = Conversation(id=cid, title=self.default_title, created_at=now, updated_at=now)
            doc.conversations.append(conv)
            self._store.save(doc)
        logger.info("Created conversation", extra={"extra": {"conversation_id": cid}})
        return conv

    def rename(self, conversation_id: str, title: Optional[str]) -> Conversation:
        """标题为空时原样返回，不写盘。"""
        with self._store.lock:
            doc = self._store.load()
            conv = self._require(doc, conversation_id)
            if not title:
                return conv
            conv.title = title
            conv.touch(self._clock())
            self._store.save(doc)
        logger.info("Renamed conversation", extra={"extra": {"conversation_id": conversation_id}})
        return conv

    def delete(self, conversation_id: str) -> bool:
        with self._store.lock:
            doc = self._store.load()
            before = len(doc.conversations)
            doc.conversations = [c for c in doc.conversations if c.id != conversation_id]
            if len(doc.conversations) == before:
                raise self._not_found(conversation_id)
            self._store.save(doc)
        logger.info("Deleted conversation", extra={"extra": {"conversation_id": conversation_id}})
        return True

    def commit_turn(
        self,
        conversation_id: str,
        new_messages: Sequence[Message],
        title: Optional[str] = None,
    ) -> Conversation:
        """把一轮对话追加到最新的存储内容上并保存。

        重新加载存储，因此期间其他会话的修改不会被覆盖。
        ``title`` 只在会话标题仍是默认值时生效，期间被用户改名则保留新名字。
        """
        with self._store.lock:
            doc = self._store.load()
            conv = self._require(doc, conversation_id)
            conv.messages.extend(new_messages)
            if title and conv.title == self.default_title:
                conv.title = title
            conv.touch(self._clock())
            self._store.save(doc)
        return conv

    def _require(self, doc: StoreDocument, conversation_id: str) -> Conversation:
        conv = doc.find(conversation_id)
        if conv is None:
            raise self._not_found(conversation_id)
        return conv

    @staticmethod
    def _not_found(conversation_id: str) -> NotFoundError:
        return NotFoundError(
            code="CONVERSATION_NOT_FOUND",
            message="Conversation not found",
            conversation_id=conversation_id,
        )
