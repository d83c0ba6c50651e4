"""AI Terminal 核心包。

在本地文档库之上提供多 Provider 的聊天会话：把选中的文档作为上下文，
通过统一的 ProviderGateway 调用 Gemini / OpenAI / Anthropic，
并可把回答保存为新的 Markdown 文档。
"""

from ai_terminal.providers.gateway import ProviderGateway
from ai_terminal.session.engine import ConversationSession, SessionConfig

__all__ = ["ConversationSession", "ProviderGateway", "SessionConfig"]
