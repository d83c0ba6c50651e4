"""OpenAI Provider 适配器。

使用 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>

请求体只依赖 model/messages 两个字段，system prompt 作为独立的 system 消息发送。
"""

from typing import Any, Dict

import httpx

from ai_terminal.config.settings import settings
from ai_terminal.domain.exceptions import MissingCredentialError, ProviderError, TransportError
from ai_terminal.domain.models import ProviderRequest
from ai_terminal.providers.registry import OPENAI_CONFIG

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIClient:
    """OpenAI Provider 客户端实现。"""

    name = "openai"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def complete(self, req: ProviderRequest) -> str:
        if not (req.api_key or "").strip():
            raise MissingCredentialError(
                code="MISSING_API_KEY",
                message=f"{OPENAI_CONFIG.display_name} API key is missing",
                provider=self.name,
            )
        payload = self._build_payload(req)
        base = getattr(self._settings, "openai_base_url", None) or DEFAULT_BASE_URL
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {req.api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            raise TransportError(code="NETWORK_ERROR", message=f"OpenAI request failed: {e}", provider=self.name)
        if resp.status_code >= 400:
            raise ProviderError(
                code="API_ERROR",
                message=f"OpenAI Error {resp.status_code}: {resp.text}",
                http_status=resp.status_code,
                provider=self.name,
                body=resp.text,
            )
        return self._parse_response(resp)

    # ---- 辅助方法 ----

    def _build_payload(self, req: ProviderRequest) -> Dict[str, Any]:
        return {
            "model": req.model_id,
            "messages": [
                {"role": "system", "content": req.system_prompt},
                {"role": "user", "content": req.user_prompt},
            ],
        }

    def _parse_response(self, resp) -> str:
        try:
            data = resp.json()
            text = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            text = None
        if not isinstance(text, str):
            raise ProviderError(
                code="API_ERROR",
                message=f"OpenAI Error {resp.status_code}: AI returned no content",
                http_status=resp.status_code,
                provider=self.name,
                body=resp.text,
            )
        return text
