"""Prompt 组装。

把附件内容、最近的历史记录和用户指令拼成发给 Provider 的 user prompt：

    Context:
    \\n=== NOTE: <名称> ===\\n<前 N 个字符>\\n ...

    Conversation so far:      (仅在 max_history_turns > 0 且存在已完成的历史时出现)
    User: ...
    Assistant: ...

    Instruction:
    <指令>
"""

from typing import List, Sequence, Tuple

from ai_terminal.domain.models import ConversationTurn

TRUNCATION_MARK = "..."


def render_note_block(display_name: str, content: str, max_chars: int) -> str:
    """渲染单篇附件，超过 max_chars 时截断并追加省略号。"""

    body = content[:max_chars]
    if len(content) > max_chars:
        body += TRUNCATION_MARK
    return f"\n=== NOTE: {display_name} ===\n{body}\n"


def render_history(turns: Sequence[ConversationTurn], max_turns: int) -> str:
    """只保留 user/assistant 记录，且最多 max_turns 条。"""

    if max_turns <= 0:
        return ""
    relevant = [t for t in turns if t.role in ("user", "assistant") and not t.pending]
    relevant = relevant[-max_turns:]
    lines: List[str] = []
    for turn in relevant:
        label = "User" if turn.role == "user" else "Assistant"
        lines.append(f"{label}: {turn.content}")
    return "\n".join(lines)


def compose_user_prompt(
    notes: Sequence[Tuple[str, str]],
    instruction: str,
    history: Sequence[ConversationTurn] = (),
    max_chars: int = 10000,
    max_history_turns: int = 0,
) -> str:
    """notes 为 (display_name, content) 列表，调用方负责去重与读取。"""

    context_text = "".join(render_note_block(name, content, max_chars) for name, content in notes)
    parts = [f"Context:\n{context_text}"]
    history_text = render_history(history, max_history_turns)
    if history_text:
        parts.append(f"Conversation so far:\n{history_text}")
    parts.append(f"Instruction:\n{instruction}")
    return "\n\n".join(parts)
