"""Anthropic Provider 适配器。

Messages API 与 OpenAI 风格不同：
- URL: {base_url}/messages
- 认证: x-api-key: <api_key>，并且必须携带 anthropic-version 头。
- system prompt 是请求体的顶层字段，max_tokens 为必填。
- 回答文本位于 content[0].text。
"""

from typing import Any, Dict

import httpx

from ai_terminal.config.settings import settings
from ai_terminal.domain.exceptions import MissingCredentialError, ProviderError, TransportError
from ai_terminal.domain.models import ProviderRequest
from ai_terminal.providers.registry import ANTHROPIC_CONFIG

DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 4096


class AnthropicClient:
    """Anthropic Provider 客户端实现。"""

    name = "anthropic"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def complete(self, req: ProviderRequest) -> str:
        if not (req.api_key or "").strip():
            raise MissingCredentialError(
                code="MISSING_API_KEY",
                message=f"{ANTHROPIC_CONFIG.display_name} API key is missing",
                provider=self.name,
            )
        payload = self._build_payload(req)
        base = getattr(self._settings, "anthropic_base_url", None) or DEFAULT_BASE_URL
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base}/messages",
                    json=payload,
                    headers={
                        "Content-Type": "application/json",
                        "x-api-key": req.api_key,
                        "anthropic-version": ANTHROPIC_VERSION,
                    },
                )
        except httpx.RequestError as e:
            raise TransportError(code="NETWORK_ERROR", message=f"Claude request failed: {e}", provider=self.name)
        if resp.status_code >= 400:
            raise ProviderError(
                code="API_ERROR",
                message=f"Claude Error {resp.status_code}: {resp.text}",
                http_status=resp.status_code,
                provider=self.name,
                body=resp.text,
            )
        return self._parse_response(resp)

    def _build_payload(self, req: ProviderRequest) -> Dict[str, Any]:
        return {
            "model": req.model_id,
            "system": req.system_prompt,
            "messages": [{"role": "user", "content": req.user_prompt}],
            "max_tokens": MAX_TOKENS,
        }

    def _parse_response(self, resp) -> str:
        try:
            data = resp.json()
            text = data["content"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError):
            text = None
        if not isinstance(text, str):
            raise ProviderError(
                code="API_ERROR",
                message=f"Claude Error {resp.status_code}: AI returned no content",
                http_status=resp.status_code,
                provider=self.name,
                body=resp.text,
            )
        return text
