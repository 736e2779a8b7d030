"""Chat Core 顶层包。

该包提供编程助手聊天后端的核心实现，
包括配置加载、领域模型、会话持久化、Provider 适配、
单轮对话编排以及 HTTP 接口。
"""

from chat_core.api.service import ChatService, build_service

__all__ = ["ChatService", "build_service"]
