"""统一的会话与请求数据模型。

本模块定义了 Session 与 Gateway 之间共享的标准数据结构：

- AttachmentRef / AttachmentGroup: 作为上下文的文档引用（只保存路径，不保存内容）。
- ConversationTurn: 会话历史中的一条记录（user / assistant / system-status）。
- ProviderRequest: 发给 ProviderGateway 的归一化请求。
- SessionState / SessionSnapshot / SessionEvent: 会话状态机及对渲染层的通知。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Dict, Literal, Optional, Tuple
from uuid import uuid4


# 会话历史角色（system-status 用于 "Generating..." 占位与错误提示）
TurnRole = Literal["user", "assistant", "system-status"]

GENERATING_TEXT = "Generating..."


@dataclass(frozen=True)
class AttachmentRef:
    """一篇上下文文档的引用。

    - path: 文档在文档库中的唯一路径（POSIX 风格，相对库根目录）。
    - display_name: 展示用短名，默认取文件名主干。
    """

    path: str
    display_name: str = ""

    def __post_init__(self) -> None:
        if not self.display_name:
            object.__setattr__(self, "display_name", PurePosixPath(self.path).stem or self.path)

    @classmethod
    def from_path(cls, path: str) -> "AttachmentRef":
        return cls(path=path)


@dataclass(frozen=True)
class AttachmentGroup:
    """按文件夹整体附加的一组文档，成员在附加时递归收集。"""

    id: str
    folder: str
    members: Tuple[AttachmentRef, ...]

    @property
    def paths(self) -> Tuple[str, ...]:
        return tuple(m.path for m in self.members)


@dataclass(frozen=True)
class ConversationTurn:
    """一条会话记录，一旦定稿不再修改。

    pending=True 仅用于 "Generating..." 占位记录，它会按 id 被替换一次。
    meta 中保存 provider / model / command 等信息，供渲染层展示标签。
    """

    id: str
    role: TurnRole
    content: str
    created_at: datetime
    meta: Dict[str, Any] = field(default_factory=dict)
    pending: bool = False

    @classmethod
    def new(cls, role: TurnRole, content: str, pending: bool = False, **meta: Any) -> "ConversationTurn":
        return cls(
            id=f"t-{uuid4().hex}",
            role=role,
            content=content,
            created_at=datetime.now(timezone.utc),
            meta=dict(meta),
            pending=pending,
        )


@dataclass
class ProviderRequest:
    """ProviderGateway 边界上的归一化请求，所有字段均为必填字符串。"""

    provider_id: str  # gemini / openai / anthropic
    model_id: str  # 厂商模型名，如 "gemini-2.0-flash"
    api_key: str  # 允许为空，但 Gateway 会在联网前直接失败
    system_prompt: str
    user_prompt: str


class SessionState(str, Enum):
    """单次交换的状态机。"""

    IDLE = "idle"
    COMPOSING = "composing"
    AWAITING_PROVIDER = "awaiting_provider"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionSnapshot:
    """会话的不可变快照，交给渲染层使用。"""

    state: SessionState
    provider: str
    model: str
    history: Tuple[ConversationTurn, ...]
    attachments: Tuple[AttachmentRef, ...]
    groups: Tuple[AttachmentGroup, ...]


@dataclass(frozen=True)
class SessionEvent:
    """ConversationSession 产生的事件。

    kind:
        - "turn_appended": 新增一条记录（turn 字段为新记录）。
        - "turn_replaced": 占位记录被替换（turn 字段为替换后的记录）。
        - "state_changed": 状态机迁移。
        - "attachments_changed": 附件或附件组变化。
        - "provider_changed": 会话默认 Provider/模型变化。
    """

    kind: Literal["turn_appended", "turn_replaced", "state_changed", "attachments_changed", "provider_changed"]
    snapshot: SessionSnapshot
    turn: Optional[ConversationTurn] = None
