import json
import os
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from ai_terminal.config.plugin_config import CustomCommand, PluginConfig
from ai_terminal.config.settings import settings
from ai_terminal.domain.exceptions import ConfigError


class JsonConfigStore:
    """data.json 持久化：启动时加载一次并与默认值合并，每次编辑后原子写回。"""

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path or Path(settings.storage_root) / settings.config_file_name).resolve()
        self._config: Optional[PluginConfig] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def config(self) -> PluginConfig:
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> PluginConfig:
        if not self._path.exists():
            self._config = PluginConfig()
            return self._config
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(code="CONFIG_READ_ERROR", message=str(e), path=str(self._path))
        if not isinstance(data, dict):
            raise ConfigError(code="CONFIG_READ_ERROR", message="config root is not an object", path=str(self._path))
        # 缺失字段由 PluginConfig 默认值补齐
        try:
            self._config = PluginConfig.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigError(code="CONFIG_READ_ERROR", message=str(e), path=str(self._path))
        return self._config

    def save(self, config: PluginConfig) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(f"{self._path.stem}.{uuid4().hex}.json.tmp")
        try:
            tmp_path.write_text(json.dumps(config.to_json_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise ConfigError(code="CONFIG_WRITE_ERROR", message=str(e), path=str(self._path))
        self._config = config

    def update(self, **changes: Any) -> PluginConfig:
        """修改若干字段并立即写回。"""

        try:
            updated = PluginConfig.model_validate({**self.config.model_dump(), **changes})
        except PydanticValidationError as e:
            raise ConfigError(code="CONFIG_INVALID", message=str(e))
        self.save(updated)
        return updated

    def add_command(self, command: CustomCommand) -> PluginConfig:
        commands = [c for c in self.config.custom_commands if c.trigger != command.trigger]
        commands.append(command)
        return self.update(custom_commands=commands)

    def remove_command(self, trigger: str) -> PluginConfig:
        commands = [c for c in self.config.custom_commands if c.trigger != trigger]
        return self.update(custom_commands=commands)
