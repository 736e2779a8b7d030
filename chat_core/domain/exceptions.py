"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层做统一捕获并映射为 HTTP 响应。

层级：
- ValidationError / NotFoundError: 面向调用方的错误，不产生任何持久化。
- StorageError: 存储读写失败。
- UpstreamError: 调用外部补全服务失败（凭证、网络、响应格式等）。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_WRITE_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时使用的状态码，未指定时取类级默认值。
        extra: 其他补充字段（例如 upstream_status、path 等）。
    """

    default_http_status = 400

    def __init__(self, code: str, message: str, http_status: Optional[int] = None, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status or self.default_http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数校验失败，例如消息为空。"""


class NotFoundError(BusinessError):
    """会话不存在。"""

    default_http_status = 404


class StorageError(BusinessError):
    """持久化存储读写失败。"""

    default_http_status = 500


class UpstreamError(BusinessError):
    """外部补全服务相关错误的基类，本轮对话不会被持久化。"""

    default_http_status = 500


class UpstreamCredentialError(UpstreamError):
    """未配置补全服务的 API Key。"""


class UpstreamServiceError(UpstreamError):
    """补全服务返回失败或无法连接。"""


class ApiError(UpstreamServiceError):
    """第三方 API 返回非 2xx 状态码时抛出，message 优先使用服务端错误信息。"""


class RateLimitError(ApiError):
    """Provider 限流错误（429）。"""


class NetworkError(UpstreamServiceError):
    """网络层错误，例如连接失败，没有拿到任何响应。"""


class UpstreamTimeoutError(NetworkError):
    """等待补全服务响应超时。"""


class UpstreamFormatError(UpstreamError):
    """响应体中缺少预期的生成文本。"""
