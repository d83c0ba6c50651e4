"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型目录 (registry)。
- 提供各厂商的具体实现 (gemini_client、openai_client、anthropic_client)。
- 提供统一分发入口 (gateway)。
"""

from typing import Optional

from ai_terminal.config.settings import settings
from ai_terminal.providers.base import ProviderClient
from ai_terminal.providers.gateway import PROVIDER_FACTORIES, ProviderGateway
from ai_terminal.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    provider_name = name or getattr(settings, "default_provider", "gemini")
    cfg = get_provider_config(provider_name)
    return PROVIDER_FACTORIES[cfg.name](settings)


__all__ = ["ProviderClient", "ProviderGateway", "create_provider"]
