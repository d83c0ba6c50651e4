"""Provider 抽象接口。

ConversationSession 不直接依赖具体厂商的 HTTP 协议，而是依赖此协议：

- 每个厂商实现一个 ProviderClient（如 GeminiClient）。
- 负责：将 ProviderRequest 转成具体 API 请求，并把响应 JSON 解析为纯文本结果。

三家厂商的请求体与认证头各不相同，这里只统一“请求/结果”契约，不统一报文。
"""

from typing import Protocol

from ai_terminal.domain.models import ProviderRequest


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志与分发。
    - complete(req): 执行一次非流式调用，返回回答文本。
    """

    name: str

    def complete(self, req: ProviderRequest) -> str:
        ...
