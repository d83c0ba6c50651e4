"""Google Gemini Provider 适配器。

本模块负责：

1. 接收统一的 ProviderRequest。
2. 将其转换为 generateContent 请求：
   - URL: {base_url}/models/{model}:generateContent
   - 认证: x-goog-api-key: <api_key>
   - system prompt 与用户 prompt 以空行拼接为同一个 user part。
3. 调用 HTTP 接口并处理网络/API 异常。
4. 从 candidates[0].content.parts[0].text 取出回答文本。

注意：Gemini 只把 HTTP 200 视为成功，其余状态码一律视为错误。
"""

from typing import Any, Dict

import httpx

from ai_terminal.config.settings import settings
from ai_terminal.domain.exceptions import MissingCredentialError, ProviderError, TransportError
from ai_terminal.domain.models import ProviderRequest
from ai_terminal.providers.registry import GEMINI_CONFIG

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiClient:
    """Gemini 提供方客户端实现。"""

    name = "gemini"

    def __init__(self, cfg=settings):
        # Settings 里包含 base_url、超时等配置
        self._settings = cfg

    def complete(self, req: ProviderRequest) -> str:
        """执行一次 generateContent 调用，返回回答文本。"""

        if not (req.api_key or "").strip():
            raise MissingCredentialError(
                code="MISSING_API_KEY",
                message=f"{GEMINI_CONFIG.display_name} API key is missing",
                provider=self.name,
            )
        payload = self._build_payload(req)
        base = getattr(self._settings, "gemini_base_url", None) or DEFAULT_BASE_URL
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base}/models/{req.model_id}:generateContent",
                    json=payload,
                    headers={
                        "Content-Type": "application/json",
                        "x-goog-api-key": req.api_key,
                    },
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise TransportError(code="NETWORK_ERROR", message=f"Gemini request failed: {e}", provider=self.name)
        if resp.status_code != 200:
            raise ProviderError(
                code="API_ERROR",
                message=f"Gemini Error {resp.status_code}: {resp.text}",
                http_status=resp.status_code,
                provider=self.name,
                body=resp.text,
            )
        return self._parse_response(resp)

    def _build_payload(self, req: ProviderRequest) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": f"{req.system_prompt}\n\n{req.user_prompt}"}],
                }
            ]
        }

    def _parse_response(self, resp) -> str:
        try:
            data = resp.json()
        except ValueError:
            raise self._no_content(resp, "Gemini returned an unparseable response")
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            raise self._no_content(resp, "AI returned no content")
        try:
            text = candidates[0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise self._no_content(resp, "AI returned no content")
        if not isinstance(text, str):
            raise self._no_content(resp, "AI returned no content")
        return text

    def _no_content(self, resp, detail: str) -> ProviderError:
        return ProviderError(
            code="API_ERROR",
            message=f"Gemini Error {resp.status_code}: {detail}",
            http_status=resp.status_code,
            provider=self.name,
            body=resp.text,
        )
