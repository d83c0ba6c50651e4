"""用户可编辑的持久化配置模型。

对应宿主插件保存在 data.json 中的内容：三个 Provider 的 API Key、
默认保存目录，以及有序的自定义斜杠命令列表。

JSON 字段使用 camelCase（与宿主插件一致），Python 侧使用 snake_case。
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ai_terminal.providers.registry import PROVIDER_REGISTRY, get_provider_config


class CustomCommand(BaseModel):
    """一条用户自定义斜杠命令。

    - trigger: 字面触发串，例如 "/summarize"。
    - provider / model_id: 本轮使用的 Provider 与模型，model_id 为空时取该 Provider 默认模型。
    - system_prompt_template: 本轮使用的 system prompt，为空时使用默认提示词。
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: str = ""
    trigger: str
    provider: str
    model_id: str = ""
    system_prompt_template: str = ""

    @field_validator("trigger")
    @classmethod
    def validate_trigger(cls, v: str) -> str:
        v = v.strip()
        if not v or any(ch.isspace() for ch in v):
            raise ValueError("trigger must be a single non-empty token")
        return v

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        key = v.strip().lower()
        if key not in PROVIDER_REGISTRY:
            raise ValueError(f"Unknown provider: {v!r}")
        return key

    def resolved_model(self) -> str:
        return self.model_id.strip() or get_provider_config(self.provider).default_model


class PluginConfig(BaseModel):
    """插件持久化配置（硬编码默认值 + data.json 覆盖）。"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    google_api_key: str = ""
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    default_folder: str = ""
    custom_commands: List[CustomCommand] = Field(default_factory=list)

    def api_key_for(self, provider_id: str) -> str:
        """返回指定 Provider 的 API Key，未配置时为空串。"""

        cfg = get_provider_config(provider_id)
        return (getattr(self, cfg.key_field, "") or "").strip()

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)
