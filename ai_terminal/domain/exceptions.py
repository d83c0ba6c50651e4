"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 Session 层或 UI 层做统一捕获与用户提示。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "DOCUMENT_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、path 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class UnknownProviderError(ValidationError):
    """请求了未注册的 Provider。"""


class SessionBusyError(BusinessError):
    """会话已有一个未完成的 Provider 调用，拒绝重叠发送。"""


class GatewayError(BusinessError):
    """ProviderGateway 抛出的错误基类。"""

    @property
    def provider(self) -> str:
        return self.extra.get("provider", "")


class MissingCredentialError(GatewayError):
    """所选 Provider 未配置 API Key，在任何网络调用之前抛出。"""


class ProviderError(GatewayError):
    """厂商接口返回非成功状态，或成功响应体无法解析/为空。"""

    @property
    def status(self) -> int:
        return self.http_status

    @property
    def body(self) -> str:
        return self.extra.get("body", "")


class TransportError(GatewayError):
    """HTTP 调用本身未能完成（DNS/TLS/连接失败、超时等）。"""


class DocumentIOError(BusinessError):
    """读取附件文档或写入生成文档失败。"""


class ConfigError(BusinessError):
    """持久化配置读写失败。"""
