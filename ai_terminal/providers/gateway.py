"""ProviderGateway：三家厂商协议之上的统一调用入口。

Gateway 本身无状态，只做三件事：
1. 校验归一化请求（provider 已注册、model 非空）。
2. 通过策略表按 provider_id 分发到对应的 ProviderClient。
3. 记录一次调用的耗时与结果（不记录 API Key 与 prompt 正文）。

每次 complete 调用最多产生一次 HTTPS POST，不重试、不缓存。
"""

import logging
import time
from typing import Callable, Dict, Mapping, Optional

from ai_terminal.config.settings import settings
from ai_terminal.domain.exceptions import GatewayError, MissingCredentialError, ValidationError
from ai_terminal.domain.models import ProviderRequest
from ai_terminal.infrastructure.logging.logger import logger
from ai_terminal.providers.anthropic_client import AnthropicClient
from ai_terminal.providers.base import ProviderClient
from ai_terminal.providers.gemini_client import GeminiClient
from ai_terminal.providers.openai_client import OpenAIClient
from ai_terminal.providers.registry import get_provider_config


PROVIDER_FACTORIES: Mapping[str, Callable[..., ProviderClient]] = {
    "gemini": GeminiClient,
    "openai": OpenAIClient,
    "anthropic": AnthropicClient,
}


class ProviderGateway:
    """按 provider_id 分发的策略表。

    clients 可由调用方注入（测试或自定义实现），否则按 PROVIDER_FACTORIES 创建。
    """

    def __init__(self, clients: Optional[Mapping[str, ProviderClient]] = None, cfg=settings):
        if clients is None:
            clients = {name: factory(cfg) for name, factory in PROVIDER_FACTORIES.items()}
        self._clients: Dict[str, ProviderClient] = {k.lower(): v for k, v in clients.items()}

    def complete(self, req: ProviderRequest) -> str:
        provider_cfg = get_provider_config(req.provider_id)
        client = self._clients.get(provider_cfg.name)
        if client is None:
            raise ValidationError(
                code="PROVIDER_NOT_CONFIGURED",
                message=f"No client registered for provider {provider_cfg.name!r}",
                provider=provider_cfg.name,
            )
        if not (req.api_key or "").strip():
            raise MissingCredentialError(
                code="MISSING_API_KEY",
                message=f"{provider_cfg.display_name} API key is missing",
                provider=provider_cfg.name,
            )
        if not (req.model_id or "").strip():
            raise ValidationError(
                code="INVALID_REQUEST",
                message=f"{provider_cfg.display_name} model id is empty",
                provider=provider_cfg.name,
            )

        log_ctx = {"provider": provider_cfg.name, "model": req.model_id}
        start = time.time()
        try:
            text = client.complete(req)
        except GatewayError as e:
            self._log(
                logging.WARNING,
                "Provider call failed",
                log_ctx,
                code=e.code,
                http_status=e.http_status,
                elapsed_seconds=round(time.time() - start, 2),
            )
            raise
        self._log(
            logging.INFO,
            "Provider call finished",
            log_ctx,
            elapsed_seconds=round(time.time() - start, 2),
            response_chars=len(text),
        )
        return text

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, object], **fields: object) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
