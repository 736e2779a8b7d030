from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ContextManager, Dict, List, Literal, Optional, Protocol


MessageRole = Literal["user", "assistant"]

DEFAULT_TITLE = "New Chat"


def format_timestamp(dt: datetime) -> str:
    """UTC ISO-8601，固定毫秒精度并以 Z 结尾，保证字符串顺序即时间顺序。"""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class Message:
    role: MessageRole
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        role = data["role"]
        if role not in ("user", "assistant"):
            raise ValueError(f"Unknown message role: {role!r}")
        return cls(role=role, content=str(data.get("content") or ""))


@dataclass
class Conversation:
    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    messages: List[Message] = field(default_factory=list)

    def touch(self, now: datetime) -> None:
        """刷新 updated_at，且不早于已有的时间戳。"""
        self.updated_at = max(now, self.updated_at, self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            created_at=parse_timestamp(data["createdAt"]),
            updated_at=parse_timestamp(data["updatedAt"]),
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
        )


@dataclass
class ConversationSummary:
    id: str
    title: str
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "updatedAt": format_timestamp(self.updated_at)}


@dataclass
class StoreDocument:
    """持久化的根聚合：全部会话，作为一个整体加载和保存。"""

    conversations: List[Conversation] = field(default_factory=list)

    def find(self, conversation_id: str) -> Optional[Conversation]:
        for conv in self.conversations:
            if conv.id == conversation_id:
                return conv
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"conversations": [c.to_dict() for c in self.conversations]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoreDocument":
        if not isinstance(data, dict) or not isinstance(data.get("conversations"), list):
            raise ValueError("Store document must be an object with a 'conversations' list")
        return cls(conversations=[Conversation.from_dict(c) for c in data["conversations"]])


class ConversationStore(Protocol):
    # 保护 load→修改→save 的整段过程
    lock: ContextManager[Any]

    def load(self) -> StoreDocument:
        ...

    def save(self, doc: StoreDocument) -> None:
        ...
