"""领域层模型与协议。

包含：
- models: AttachmentRef / ConversationTurn / ProviderRequest 等统一模型。
- documents: DocumentStore / DocumentPicker 外部能力协议。
- exceptions: 业务异常类型定义。
"""
