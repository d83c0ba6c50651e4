"""Provider 与模型目录。

模型目录是配置数据而不是逻辑：这里集中登记每个 Provider 的展示名、
默认模型和已知模型的展示标签（对应聊天面板的模型选择器）。
目录之外的模型 ID 会原样透传给厂商接口。
"""

from dataclasses import dataclass
from typing import Dict, Mapping

from ai_terminal.domain.exceptions import UnknownProviderError


@dataclass
class ModelConfig:
    """单个模型的展示配置。"""

    model_id: str
    label: str
    icon: str = ""


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    display_name: str
    key_field: str  # PluginConfig 中保存该 Provider API Key 的字段名
    default_model: str
    models: Dict[str, ModelConfig]

    def label_for(self, model_id: str) -> str:
        cfg = self.models.get(model_id)
        return cfg.label if cfg else model_id


GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    display_name="Google Gemini",
    key_field="google_api_key",
    default_model="gemini-2.0-flash",
    models={
        "gemini-2.0-flash": ModelConfig(model_id="gemini-2.0-flash", label="Gemini 2.0 Flash", icon="✨"),
    },
)

OPENAI_CONFIG = ProviderConfig(
    name="openai",
    display_name="OpenAI",
    key_field="openai_api_key",
    default_model="gpt-4o",
    models={
        "gpt-4o": ModelConfig(model_id="gpt-4o", label="GPT-4o", icon="🟢"),
    },
)

ANTHROPIC_CONFIG = ProviderConfig(
    name="anthropic",
    display_name="Anthropic",
    key_field="anthropic_api_key",
    default_model="claude-3-5-sonnet",
    models={
        "claude-3-5-sonnet": ModelConfig(model_id="claude-3-5-sonnet", label="Claude 3.5 Sonnet", icon="✴️"),
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "gemini": GEMINI_CONFIG,
    "openai": OPENAI_CONFIG,
    "anthropic": ANTHROPIC_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = (name or "").strip().lower()
    cfg = PROVIDER_REGISTRY.get(key)
    if cfg is None:
        raise UnknownProviderError(code="UNKNOWN_PROVIDER", message=f"Unknown provider: {name!r}", provider=name)
    return cfg
