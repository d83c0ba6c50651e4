import pytest

from ai_terminal.domain.exceptions import DocumentIOError


class MemoryStore:
    """In-memory DocumentStore used by session, materializer and service tests."""

    def __init__(self, docs=None):
        self.docs = dict(docs or {})
        self.folders = set()
        self.active = None
        self.fail_read = set()
        self.fail_create = False
        self.reads = []

    def list_documents(self):
        return sorted(self.docs)

    def read_document(self, path):
        self.reads.append(path)
        if path in self.fail_read:
            raise DocumentIOError(code="DOCUMENT_READ_ERROR", message=f"cannot read {path}", path=path)
        return self.docs[path]

    def create_document(self, path, text):
        if self.fail_create:
            raise OSError("disk full")
        self.docs[path] = text
        return path

    def document_exists(self, path):
        return path in self.docs or path in self.folders

    def create_folder(self, path):
        self.folders.add(path)

    def get_active_document(self):
        return self.active


@pytest.fixture
def memory_store():
    return MemoryStore
