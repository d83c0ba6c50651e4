"""把助手回答保存为新文档。

标题推导顺序：
1. 文首 YAML front matter 中的 title 字段；
2. 任意一行 ``title: ...``；
3. 第一个 Markdown 标题；
4. 第一行非空文本（最多 50 个字符）；
5. ``AI Response <时间戳>``。

文件名冲突时依次尝试 ``<标题> 1.md``、``<标题> 2.md`` ……
真正的文件创建交给 DocumentStore。
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional

import yaml

from ai_terminal.domain.documents import DocumentStore
from ai_terminal.domain.exceptions import BusinessError, DocumentIOError

NOTE_SUFFIX = ".md"
FIRST_LINE_LIMIT = 50
FILENAME_LIMIT = 100

_FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_TITLE_LINE_RE = re.compile(r"^[ \t]*title[ \t]*:[ \t]*(.+?)[ \t]*$", re.MULTILINE | re.IGNORECASE)
_HEADING_RE = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+(.+?)[ \t#]*$", re.MULTILINE)
_ILLEGAL_CHARS_RE = re.compile(r'[\\/:*?"<>|]')


def fallback_title(now: datetime) -> str:
    return f"AI Response {now.strftime('%Y-%m-%dT%H-%M-%S')}"


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1].strip()
    return value


def _front_matter_title(text: str) -> Optional[str]:
    match = _FRONT_MATTER_RE.match(text)
    if not match:
        return None
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        return None
    if isinstance(data, dict):
        title = data.get("title")
        if title is not None and str(title).strip():
            return str(title).strip()
    return None


def derive_title(text: str, now: Optional[datetime] = None) -> str:
    """按上述顺序从回答文本推导标题。"""

    now = now or datetime.now(timezone.utc)
    body = (text or "").lstrip("\ufeff").lstrip()

    title = _front_matter_title(body)
    if title:
        return title

    match = _TITLE_LINE_RE.search(body)
    if match and _strip_quotes(match.group(1)):
        return _strip_quotes(match.group(1))

    match = _HEADING_RE.search(body)
    if match and match.group(1).strip():
        return match.group(1).strip()

    for line in body.splitlines():
        if line.strip():
            return line.strip()[:FIRST_LINE_LIMIT].strip()

    return fallback_title(now)


def sanitize_filename(title: str) -> str:
    """把标题转成合法文件名（不含扩展名），结果可能为空串。"""

    name = _ILLEGAL_CHARS_RE.sub("-", title or "")
    name = re.sub(r"\s+", " ", name).strip().strip(".").strip()
    return name[:FILENAME_LIMIT].rstrip(". ")


def _join(folder: str, name: str) -> str:
    return f"{folder}/{name}" if folder else name


def resolve_available_path(store: DocumentStore, folder: str, base: str) -> str:
    """返回第一个未被占用的路径：base.md、base 1.md、base 2.md ……"""

    candidate = _join(folder, f"{base}{NOTE_SUFFIX}")
    counter = 1
    while store.document_exists(candidate):
        candidate = _join(folder, f"{base} {counter}{NOTE_SUFFIX}")
        counter += 1
    return candidate


def wrap_with_metadata(text: str, title: str, now: datetime, **meta: Any) -> str:
    """在文首添加 YAML front matter；文本已自带 front matter 时原样返回。"""

    if text.lstrip("\ufeff").lstrip().startswith("---"):
        return text
    header: dict = {
        "title": title,
        "created": now.isoformat(timespec="seconds"),
        "source": "ai-terminal",
    }
    header.update({k: v for k, v in meta.items() if v})
    dumped = yaml.safe_dump(header, sort_keys=False, allow_unicode=True)
    return f"---\n{dumped}---\n\n{text}"


def create_document_from_response(
    store: DocumentStore,
    text: str,
    folder: str = "",
    now: Optional[datetime] = None,
    wrap_metadata: bool = True,
    **meta: Any,
) -> str:
    """推导标题、避开重名并通过 store 创建文档，返回最终路径。

    Raises:
        DocumentIOError: 创建文件夹或文档失败。
    """

    now = now or datetime.now(timezone.utc)
    title = derive_title(text, now)
    base = sanitize_filename(title) or sanitize_filename(fallback_title(now))
    folder = (folder or "").strip().strip("/")
    try:
        if folder and not store.document_exists(folder):
            store.create_folder(folder)
        path = resolve_available_path(store, folder, base)
        content = wrap_with_metadata(text, title, now, **meta) if wrap_metadata else text
        return store.create_document(path, content) or path
    except DocumentIOError:
        raise
    except BusinessError as e:
        raise DocumentIOError(code="DOCUMENT_WRITE_ERROR", message=e.message, folder=folder)
    except Exception as e:
        raise DocumentIOError(code="DOCUMENT_WRITE_ERROR", message=f"Failed to create note: {e}", folder=folder)
