"""会话持久化：仓库层操作（创建、查询、列表、改名、删除、提交对话轮次）。"""

from chat_core.conversations.repository import ConversationRepository

__all__ = ["ConversationRepository"]
