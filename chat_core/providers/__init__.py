"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供具体实现 (anthropic_client)。
"""

from typing import Literal, Optional

from chat_core.config.settings import settings
from chat_core.providers.base import ProviderClient
from chat_core.providers.anthropic_client import AnthropicClient
from chat_core.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None, cfg=None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    cfg = cfg or settings
    provider_name = (name or getattr(cfg, "default_provider", "anthropic")).lower()
    # 未知名称直接报错，避免静默落到别的厂商
    get_provider_config(provider_name)
    return AnthropicClient(cfg)


DefaultProviderName = Literal["anthropic"]

__all__ = ["AnthropicClient", "ProviderClient", "create_provider"]
