"""领域层模型与协议。

包含：
- models: 与 Provider 交互的 ChatMessage / ChatRequest / ChatResult 模型。
- conversation: 会话、消息、存储文档模型及 ConversationStore 抽象。
- exceptions: 业务异常类型定义。
"""
