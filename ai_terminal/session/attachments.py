"""Attachment bookkeeping for one chat session.

Individual attachments and folder groups are kept side by side. A document
may be referenced by both; `unique_refs` collapses them by path so the
composed prompt never carries the same document twice.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Literal, Optional, Tuple
from uuid import uuid4

from ai_terminal.domain.models import AttachmentGroup, AttachmentRef

AttachMode = Literal["merge", "replace"]


def _normalize_folder(folder: str) -> str:
    return (folder or "").strip().strip("/")


class AttachmentSet:
    def __init__(self) -> None:
        self._items: Dict[str, AttachmentRef] = {}  # insertion ordered, keyed by path
        self._groups: Dict[str, AttachmentGroup] = {}

    # ---- individual documents ----

    def add(self, ref: AttachmentRef) -> bool:
        """Add a document; returns False when the path is already attached individually."""

        if ref.path in self._items:
            return False
        self._items[ref.path] = ref
        return True

    def apply(self, refs: Iterable[AttachmentRef], mode: AttachMode = "merge") -> bool:
        refs = list(refs)
        if mode == "replace":
            before = list(self._items)
            self._items = {}
            for ref in refs:
                self._items.setdefault(ref.path, ref)
            return before != list(self._items)
        changed = False
        for ref in refs:
            changed = self.add(ref) or changed
        return changed

    def remove(self, path: str) -> bool:
        return self._items.pop(path, None) is not None

    # ---- folder groups ----

    def find_group(self, folder: str) -> Optional[AttachmentGroup]:
        key = _normalize_folder(folder)
        for group in self._groups.values():
            if group.folder == key:
                return group
        return None

    def add_group(self, folder: str, members: Iterable[AttachmentRef]) -> AttachmentGroup:
        existing = self.find_group(folder)
        if existing is not None:
            return existing
        unique: Dict[str, AttachmentRef] = {}
        for ref in members:
            unique.setdefault(ref.path, ref)
        group = AttachmentGroup(
            id=f"g-{uuid4().hex}",
            folder=_normalize_folder(folder),
            members=tuple(unique.values()),
        )
        self._groups[group.id] = group
        return group

    def remove_group(self, group_id: str) -> bool:
        return self._groups.pop(group_id, None) is not None

    # ---- views ----

    @property
    def items(self) -> Tuple[AttachmentRef, ...]:
        return tuple(self._items.values())

    @property
    def groups(self) -> Tuple[AttachmentGroup, ...]:
        return tuple(self._groups.values())

    def contains(self, path: str) -> bool:
        if path in self._items:
            return True
        return any(path in g.paths for g in self._groups.values())

    def unique_refs(self) -> List[AttachmentRef]:
        """Individual attachments first, then group members; first occurrence wins."""

        seen: Dict[str, AttachmentRef] = dict(self._items)
        for group in self._groups.values():
            for ref in group.members:
                seen.setdefault(ref.path, ref)
        return list(seen.values())
