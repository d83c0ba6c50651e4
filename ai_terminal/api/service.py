"""对外 API 服务模块。

提供简化的函数接口供上层应用（例如宿主插件的视图层）调用，
所有返回值都是普通 dict / list，方便序列化。
"""

from typing import Any, Dict, Iterable, Optional

from ai_terminal.config.settings import settings
from ai_terminal.domain.documents import DocumentStore
from ai_terminal.domain.exceptions import DocumentIOError
from ai_terminal.domain.models import ConversationTurn
from ai_terminal.infrastructure.logging.logger import logger
from ai_terminal.infrastructure.storage.config_store import JsonConfigStore
from ai_terminal.infrastructure.storage.vault_store import LocalVaultStore
from ai_terminal.providers.gateway import ProviderGateway
from ai_terminal.session.engine import ConversationSession


_store: Optional[DocumentStore] = None
_config_store: Optional[JsonConfigStore] = None
_session: Optional[ConversationSession] = None


def get_config_store() -> JsonConfigStore:
    """获取默认的配置存储（单例）。"""
    global _config_store
    if _config_store is None:
        _config_store = JsonConfigStore()
    return _config_store


def get_default_session() -> ConversationSession:
    """获取默认的会话实例（单例）。"""
    global _store, _session
    if _store is None:
        _store = LocalVaultStore(root=settings.vault_root)
    if _session is None:
        config_store = get_config_store()
        _session = ConversationSession(
            store=_store,
            gateway=ProviderGateway(),
            config_loader=lambda: config_store.config,
        )
    return _session


def reset_default_session() -> None:
    """丢弃单例（切换文档库或测试时使用）。"""
    global _store, _config_store, _session
    _store = None
    _config_store = None
    _session = None


def _turn_to_dict(turn: ConversationTurn) -> Dict[str, Any]:
    return {
        "id": turn.id,
        "role": turn.role,
        "content": turn.content,
        "created_at": turn.created_at.isoformat(),
        "pending": turn.pending,
        "meta": dict(turn.meta),
    }


def run_chat(text: str) -> Optional[Dict[str, Any]]:
    """发送一条消息。

    Args:
        text: 用户输入，可以以自定义斜杠命令开头

    Returns:
        本轮最终记录（assistant 或 system-status）；空白输入返回 None

    Raises:
        SessionBusyError: 上一次请求尚未结束
    """
    session = get_default_session()
    turn = session.send(text)
    return _turn_to_dict(turn) if turn is not None else None


def attach_paths(paths: Iterable[str], mode: str = "merge") -> Dict[str, Any]:
    """附加若干文档，返回当前附件状态。"""
    session = get_default_session()
    session.attach_many(list(paths), mode=mode)  # type: ignore[arg-type]
    return get_attachments()


def attach_folder(folder: str) -> Dict[str, Any]:
    """附加整个文件夹，返回新建（或已存在）的附件组。"""
    session = get_default_session()
    group = session.attach_folder(folder)
    return {"id": group.id, "folder": group.folder, "paths": list(group.paths)}


def get_attachments() -> Dict[str, Any]:
    session = get_default_session()
    return {
        "attachments": [{"path": a.path, "display_name": a.display_name} for a in session.attachments],
        "groups": [{"id": g.id, "folder": g.folder, "paths": list(g.paths)} for g in session.groups],
        "effective_paths": session.attached_paths(),
    }


def save_response(turn_id: str, folder: Optional[str] = None) -> Dict[str, Any]:
    """把某条助手回答保存为新文档。

    失败不会抛出，而是返回 ``{"ok": False, "error": ...}`` 供界面提示。
    """
    session = get_default_session()
    try:
        path = session.create_document_from_response(turn_id, folder=folder)
    except DocumentIOError as e:
        logger.error(f"Save response failed: {e.message}", extra={"extra": {
            "turn_id": turn_id,
            "code": e.code,
        }})
        return {"ok": False, "error": e.message, "code": e.code}
    return {"ok": True, "path": path}


def list_turns() -> list[Dict[str, Any]]:
    """返回当前会话的全部历史记录。"""
    session = get_default_session()
    return [_turn_to_dict(t) for t in session.history]


def select_provider(provider_id: str, model_id: Optional[str] = None) -> Dict[str, Any]:
    session = get_default_session()
    label = session.select_provider(provider_id, model_id)
    return {"provider": session.provider, "model": session.model, "label": label}


def update_config(**changes: Any) -> Dict[str, Any]:
    """修改持久化配置并立即写回 data.json，返回脱敏后的配置。"""
    cfg = get_config_store().update(**changes)
    data = cfg.to_json_dict()
    for key in ("googleApiKey", "openaiApiKey", "anthropicApiKey"):
        data[key] = bool(data.get(key))
    return data
