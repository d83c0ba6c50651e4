"""Local filesystem implementation of the DocumentStore protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from ai_terminal.config.settings import settings
from ai_terminal.domain.exceptions import DocumentIOError
from ai_terminal.domain.models import AttachmentRef


@dataclass
class LocalVaultStore:
    """A vault rooted at a directory; document paths are POSIX paths relative to it."""

    root: Path = field(default_factory=lambda: Path(settings.vault_root))
    suffixes: Tuple[str, ...] = (".md",)
    active_document: Optional[str] = None

    def __post_init__(self) -> None:
        self.root = Path(self.root).expanduser().resolve()

    # ---- helpers -------------------------------------------------

    def _resolve(self, raw: str) -> Path:
        rel = (raw or "").strip().lstrip("/")
        candidate = (self.root / rel).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise DocumentIOError(
                code="DOCUMENT_PATH_ERROR",
                message=f"path outside vault: {raw}",
                path=raw,
            ) from exc
        return candidate

    # ---- read ops ------------------------------------------------

    def list_documents(self) -> List[str]:
        if not self.root.exists():
            return []
        docs = [
            file.relative_to(self.root).as_posix()
            for file in self.root.rglob("*")
            if file.is_file() and file.suffix.lower() in self.suffixes
        ]
        return sorted(docs)

    def read_document(self, path: str) -> str:
        resolved = self._resolve(path)
        try:
            return resolved.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentIOError(code="DOCUMENT_READ_ERROR", message=f"Failed to read {path}: {e}", path=path)

    def document_exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def get_active_document(self) -> Optional[AttachmentRef]:
        if not self.active_document:
            return None
        return AttachmentRef.from_path(self.active_document)

    def set_active_document(self, path: Optional[str]) -> None:
        self.active_document = path

    # ---- writes --------------------------------------------------

    def create_document(self, path: str, text: str) -> str:
        resolved = self._resolve(path)
        if resolved.exists():
            raise DocumentIOError(code="DOCUMENT_EXISTS", message=f"Document already exists: {path}", path=path)
        try:
            resolved.parent.mkdir(parents=True, exist_ok=True)
            resolved.write_text(text, encoding="utf-8")
        except OSError as e:
            raise DocumentIOError(code="DOCUMENT_WRITE_ERROR", message=f"Failed to write {path}: {e}", path=path)
        return resolved.relative_to(self.root).as_posix()

    def create_folder(self, path: str) -> None:
        resolved = self._resolve(path)
        try:
            resolved.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DocumentIOError(code="DOCUMENT_WRITE_ERROR", message=f"Failed to create folder {path}: {e}", path=path)
