"""会话引擎核心模块。

实现附件管理、prompt 组装、斜杠命令覆盖、单请求串行调用 Gateway、
以及把回答保存为文档等核心逻辑。

单次交换的状态机：

    IDLE -> COMPOSING -> AWAITING_PROVIDER -> RESOLVED / FAILED -> IDLE

会话本身不做渲染，只在每次状态或数据变化时向订阅者发出 SessionEvent。
"""

from dataclasses import dataclass
from typing import Callable, Dict, Any, Iterable, List, Literal, Optional, Protocol, Sequence, Tuple, Union
from uuid import uuid4
import logging
import threading
import time

from ai_terminal.config.plugin_config import PluginConfig
from ai_terminal.config.settings import settings
from ai_terminal.domain.documents import DocumentPicker, DocumentStore
from ai_terminal.domain.exceptions import BusinessError, DocumentIOError, SessionBusyError, ValidationError
from ai_terminal.domain.models import (
    GENERATING_TEXT,
    AttachmentGroup,
    AttachmentRef,
    ConversationTurn,
    ProviderRequest,
    SessionEvent,
    SessionSnapshot,
    SessionState,
)
from ai_terminal.infrastructure.logging.logger import logger
from ai_terminal.notes import materializer
from ai_terminal.prompts import load_system_prompt
from ai_terminal.providers.registry import get_provider_config
from ai_terminal.session.attachments import AttachMode, AttachmentSet
from ai_terminal.session.commands import match_command
from ai_terminal.session.prompt import compose_user_prompt


class CompletionGateway(Protocol):
    def complete(self, req: ProviderRequest) -> str:
        ...


Listener = Callable[[SessionEvent], None]
ConfigLoader = Callable[[], PluginConfig]


@dataclass
class SessionConfig:
    provider: str
    model: str
    system_prompt: str
    max_context_chars: int = 10000
    max_history_turns: int = 0
    auto_attach_active: bool = False
    wrap_note_metadata: bool = True

    @classmethod
    def from_settings(cls, provider: Optional[str] = None, model: Optional[str] = None) -> "SessionConfig":
        provider_cfg = get_provider_config(provider or settings.default_provider)
        return cls(
            provider=provider_cfg.name,
            model=model or provider_cfg.default_model,
            system_prompt=load_system_prompt(),
            max_context_chars=settings.max_context_chars,
            max_history_turns=settings.max_history_turns,
            auto_attach_active=settings.auto_attach_active,
            wrap_note_metadata=settings.wrap_note_metadata,
        )


@dataclass(frozen=True)
class _Route:
    """单轮实际使用的 provider/model/system prompt（可能来自自定义命令）。"""

    provider: str
    model: str
    system_prompt: str
    instruction: str
    command: Optional[str] = None


class ConversationSession:
    """一个聊天面板对应一个会话实例，独占其历史与附件集合。"""

    def __init__(
        self,
        store: DocumentStore,
        gateway: CompletionGateway,
        config_loader: Optional[ConfigLoader] = None,
        config: Optional[SessionConfig] = None,
    ):
        self._store = store
        self._gateway = gateway
        self._config_loader: ConfigLoader = config_loader or PluginConfig
        self._config = config or SessionConfig.from_settings()
        self._history: List[ConversationTurn] = []
        self._attachments = AttachmentSet()
        self._state = SessionState.IDLE
        self._listeners: List[Listener] = []
        self._send_lock = threading.Lock()

    # ---- 只读视图 ----

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state is not SessionState.IDLE

    @property
    def provider(self) -> str:
        return self._config.provider

    @property
    def model(self) -> str:
        return self._config.model

    @property
    def model_label(self) -> str:
        return get_provider_config(self._config.provider).label_for(self._config.model)

    @property
    def history(self) -> Tuple[ConversationTurn, ...]:
        return tuple(self._history)

    @property
    def attachments(self) -> Tuple[AttachmentRef, ...]:
        return self._attachments.items

    @property
    def groups(self) -> Tuple[AttachmentGroup, ...]:
        return self._attachments.groups

    def attached_paths(self) -> List[str]:
        """组装 prompt 时实际使用的文档路径（按路径去重）。"""

        return [ref.path for ref in self._attachments.unique_refs()]

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            provider=self._config.provider,
            model=self._config.model,
            history=tuple(self._history),
            attachments=self._attachments.items,
            groups=self._attachments.groups,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """订阅会话事件，返回取消订阅函数。"""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---- Provider 选择 ----

    def select_provider(self, provider_id: str, model_id: Optional[str] = None) -> str:
        """切换会话默认 Provider/模型，返回模型展示名。"""

        provider_cfg = get_provider_config(provider_id)
        self._config.provider = provider_cfg.name
        self._config.model = (model_id or "").strip() or provider_cfg.default_model
        self._emit("provider_changed")
        label = provider_cfg.label_for(self._config.model)
        logger.info("Switched provider", extra={"extra": {"provider": provider_cfg.name, "model": self._config.model}})
        return label

    # ---- 附件管理 ----

    def attach(self, doc: Union[AttachmentRef, str]) -> bool:
        """附加单篇文档；路径已存在时不做任何事并返回 False。"""

        ref = doc if isinstance(doc, AttachmentRef) else AttachmentRef.from_path(doc)
        added = self._attachments.add(ref)
        if added:
            self._emit("attachments_changed")
        return added

    def attach_many(self, docs: Iterable[Union[AttachmentRef, str]], mode: AttachMode = "merge") -> bool:
        """merge: 逐个追加；replace: 单篇附件列表变为恰好这些文档（文件夹组不受影响）。"""

        refs = [d if isinstance(d, AttachmentRef) else AttachmentRef.from_path(d) for d in docs]
        changed = self._attachments.apply(refs, mode=mode)
        if changed:
            self._emit("attachments_changed")
        return changed

    def attach_folder(self, folder: str) -> AttachmentGroup:
        """递归收集文件夹下的全部文档作为一个附件组；同一文件夹只会有一个组。"""

        existing = self._attachments.find_group(folder)
        if existing is not None:
            return existing
        prefix = (folder or "").strip().strip("/")
        try:
            paths = self._store.list_documents()
        except DocumentIOError:
            raise
        except Exception as e:
            raise DocumentIOError(code="DOCUMENT_READ_ERROR", message=f"Failed to list documents: {e}", folder=prefix)
        members = [
            AttachmentRef.from_path(p)
            for p in paths
            if not prefix or p.startswith(prefix + "/")
        ]
        if not members:
            logger.warning("Attached folder has no documents", extra={"extra": {"folder": prefix}})
        group = self._attachments.add_group(prefix, members)
        self._emit("attachments_changed")
        return group

    def detach(self, path: str) -> bool:
        removed = self._attachments.remove(path)
        if removed:
            self._emit("attachments_changed")
        return removed

    def detach_group(self, group_id: str) -> bool:
        removed = self._attachments.remove_group(group_id)
        if removed:
            self._emit("attachments_changed")
        return removed

    def attach_from_picker(self, picker: DocumentPicker, mode: AttachMode = "replace") -> Tuple[AttachmentRef, ...]:
        """通过选择器请求文档列表，默认以选择结果替换当前单篇附件。"""

        selection = picker.request_document_selection(self._attachments.items)
        self.attach_many(selection, mode=mode)
        return self._attachments.items

    def on_active_document_changed(self, doc: Optional[AttachmentRef] = None) -> bool:
        """宿主通知活动文档变化；开启自动附加时幂等地附加该文档。"""

        if not self._config.auto_attach_active:
            return False
        ref = doc if doc is not None else self._store.get_active_document()
        if ref is None or self._attachments.contains(ref.path):
            return False
        return self.attach(ref)

    # ---- 发送 ----

    def send(self, text: str) -> Optional[ConversationTurn]:
        """发送一条指令，返回本轮最终记录（assistant 或 system-status）。

        空白输入直接返回 None，不产生任何记录；已有请求未完成时抛出 SessionBusyError。
        """

        instruction = (text or "").strip()
        if not instruction:
            return None
        # 检查与占用在同一把锁内完成；事件在锁外发出，监听器重入 send 时直接得到 SessionBusyError
        with self._send_lock:
            if self._state is not SessionState.IDLE:
                raise SessionBusyError(code="SESSION_BUSY", message="A request is already in progress")
            self._state = SessionState.COMPOSING

        start_time = time.time()
        log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}"}
        prior = tuple(self._history)
        try:
            self._emit("state_changed")
            self._append(ConversationTurn.new("user", instruction))
            try:
                plugin_cfg = self._config_loader()
                route = self._resolve_route(instruction, plugin_cfg)
                request = self._build_request(route, plugin_cfg, prior)
            except BusinessError as e:
                self._log(logging.WARNING, "Prompt composition failed", log_ctx, code=e.code, error=e.message)
                final = self._append(self._error_turn(e))
                self._set_state(SessionState.FAILED)
                return final

            placeholder = self._append(ConversationTurn.new("system-status", GENERATING_TEXT, pending=True))
            self._set_state(SessionState.AWAITING_PROVIDER)
            self._log(
                logging.INFO,
                "Calling provider",
                log_ctx,
                provider=route.provider,
                model=route.model,
                command=route.command,
                attachment_count=len(self.attached_paths()),
                prompt_chars=len(request.user_prompt),
            )
            try:
                answer = self._gateway.complete(request)
            except BusinessError as e:
                self._log(logging.WARNING, "Provider call failed", log_ctx, code=e.code, error=e.message)
                final = self._replace(placeholder, self._error_turn(e, provider=route.provider))
                self._set_state(SessionState.FAILED)
            except Exception as e:
                logger.exception("Unexpected provider failure", extra={"extra": dict(log_ctx)})
                final = self._replace(
                    placeholder,
                    ConversationTurn.new(
                        "system-status",
                        f"Error: {get_provider_config(route.provider).display_name} request failed: {e}",
                        error_code="UNEXPECTED",
                        provider=route.provider,
                    ),
                )
                self._set_state(SessionState.FAILED)
            else:
                final = self._replace(
                    placeholder,
                    ConversationTurn.new(
                        "assistant",
                        answer,
                        provider=route.provider,
                        model=route.model,
                        model_label=get_provider_config(route.provider).label_for(route.model),
                        command=route.command,
                    ),
                )
                self._set_state(SessionState.RESOLVED)

            self._log(
                logging.INFO,
                "Completed exchange",
                log_ctx,
                state=self._state.value,
                elapsed_seconds=round(time.time() - start_time, 2),
            )
            return final
        finally:
            self._set_state(SessionState.IDLE)

    # ---- 保存回答 ----

    def create_document_from_response(
        self,
        turn_id: Optional[str] = None,
        *,
        text: Optional[str] = None,
        folder: Optional[str] = None,
    ) -> str:
        """把助手回答保存为新文档并返回路径，失败时抛出 DocumentIOError，不影响历史。"""

        meta: Dict[str, Any] = {}
        if turn_id is not None:
            turn = next((t for t in self._history if t.id == turn_id), None)
            if turn is None or turn.role != "assistant":
                raise ValidationError(code="TURN_NOT_FOUND", message=f"No assistant turn {turn_id!r}")
            text = turn.content
            meta = {"provider": turn.meta.get("provider"), "model": turn.meta.get("model")}
        if not text or not text.strip():
            raise ValidationError(code="INVALID_REQUEST", message="Nothing to save")
        if folder is None:
            folder = self._config_loader().default_folder
        path = materializer.create_document_from_response(
            self._store,
            text,
            folder=folder,
            wrap_metadata=self._config.wrap_note_metadata,
            **meta,
        )
        logger.info("Created note from response", extra={"extra": {"path": path}})
        return path

    # ---- 内部实现 ----

    def _resolve_route(self, instruction: str, plugin_cfg: PluginConfig) -> _Route:
        match = match_command(instruction, plugin_cfg.custom_commands)
        if match is None:
            return _Route(
                provider=self._config.provider,
                model=self._config.model,
                system_prompt=self._config.system_prompt,
                instruction=instruction,
            )
        command = match.command
        return _Route(
            provider=command.provider,
            model=command.resolved_model(),
            system_prompt=command.system_prompt_template.strip() or self._config.system_prompt,
            instruction=match.instruction,
            command=command.name or command.trigger,
        )

    def _build_request(self, route: _Route, plugin_cfg: PluginConfig, prior: Sequence[ConversationTurn]) -> ProviderRequest:
        user_prompt = compose_user_prompt(
            self._read_notes(),
            route.instruction,
            history=prior,
            max_chars=self._config.max_context_chars,
            max_history_turns=self._config.max_history_turns,
        )
        return ProviderRequest(
            provider_id=route.provider,
            model_id=route.model,
            api_key=plugin_cfg.api_key_for(route.provider),
            system_prompt=route.system_prompt,
            user_prompt=user_prompt,
        )

    def _read_notes(self) -> List[Tuple[str, str]]:
        """发送时重新读取每篇附件（不缓存内容）。"""

        notes: List[Tuple[str, str]] = []
        for ref in self._attachments.unique_refs():
            try:
                content = self._store.read_document(ref.path)
            except DocumentIOError:
                raise
            except Exception as e:
                raise DocumentIOError(
                    code="DOCUMENT_READ_ERROR",
                    message=f"Failed to read {ref.path}: {e}",
                    path=ref.path,
                )
            notes.append((ref.display_name, content))
        return notes

    @staticmethod
    def _error_turn(error: BusinessError, **meta: Any) -> ConversationTurn:
        return ConversationTurn.new("system-status", f"Error: {error.message}", error_code=error.code, **meta)

    def _append(self, turn: ConversationTurn) -> ConversationTurn:
        self._history.append(turn)
        self._emit("turn_appended", turn)
        return turn

    def _replace(self, placeholder: ConversationTurn, turn: ConversationTurn) -> ConversationTurn:
        """按 id（而不是位置）替换占位记录。"""

        idx = next(i for i, t in enumerate(self._history) if t.id == placeholder.id)
        self._history[idx] = turn
        self._emit("turn_replaced", turn)
        return turn

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        self._state = state
        self._emit("state_changed")

    def _emit(
        self,
        kind: Literal["turn_appended", "turn_replaced", "state_changed", "attachments_changed", "provider_changed"],
        turn: Optional[ConversationTurn] = None,
    ) -> None:
        if not self._listeners:
            return
        event = SessionEvent(kind=kind, snapshot=self.snapshot(), turn=turn)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Session listener failed", extra={"extra": {"kind": kind}})

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
