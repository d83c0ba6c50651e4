"""宿主提供的外部能力协议。

Session 只把这些能力当作不透明接口使用，不实现存储本身：
- DocumentStore: 文档库（列举、读取、创建文档/文件夹、当前活动文档）。
- DocumentPicker: 文档选择器，把宿主“打开弹窗 + 回调”的模式
  抽象为一次请求/响应。
"""

from typing import List, Optional, Protocol, Sequence

from .models import AttachmentRef


class DocumentStore(Protocol):
    def list_documents(self) -> List[str]:
        ...

    def read_document(self, path: str) -> str:
        ...

    def create_document(self, path: str, text: str) -> str:
        ...

    def document_exists(self, path: str) -> bool:
        ...

    def create_folder(self, path: str) -> None:
        ...

    def get_active_document(self) -> Optional[AttachmentRef]:
        ...


class DocumentPicker(Protocol):
    def request_document_selection(self, current: Sequence[AttachmentRef]) -> List[AttachmentRef]:
        """返回用户最终选择的文档列表（current 为预选项）。"""

        ...
