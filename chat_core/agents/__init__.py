from chat_core.agents.exchange import ExchangeConfig, MessageExchange, TurnResult, derive_title

__all__ = ["ExchangeConfig", "MessageExchange", "TurnResult", "derive_title"]
