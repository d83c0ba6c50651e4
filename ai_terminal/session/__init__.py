"""会话层：附件集合、斜杠命令、prompt 组装与会话状态机。"""

from ai_terminal.session.engine import ConversationSession, SessionConfig

__all__ = ["ConversationSession", "SessionConfig"]
