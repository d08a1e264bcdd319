"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 Engine 层或 UI 层做统一捕获与用户提示。

Provider 相关的异常（NetworkError / ApiError / RateLimitError）只在单个
Provider 的尝试内部传播，由 FallbackEngine 捕获后切换到下一个 Provider；
只有 AllProvidersFailed 会以聚合错误的形式暴露给调用方。
"""

from typing import Dict, Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "NETWORK_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时、响应体无法读取等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误，FallbackEngine 会直接切换到下一个 Provider。"""


class ValidationError(BusinessError):
    """参数或配置校验失败（例如缺少 base_url / API Key）。"""


class SynthesisError(BusinessError):
    """远程语音合成失败，由 PlaybackQueue 降级为本地合成。"""


class AllProvidersFailed(BusinessError):
    """优先级列表中的所有 Provider 均不可用或调用失败。

    attempts 记录每个 Provider 的失败原因（不可用的 Provider 记为 "ineligible"），
    只用于日志与排查，不直接展示给用户。
    """

    DEFAULT_MESSAGE = "All providers failed. Please check your settings."

    def __init__(self, attempts: Optional[Dict[str, str]] = None, message: str = DEFAULT_MESSAGE):
        super().__init__(code="ALL_PROVIDERS_FAILED", message=message, http_status=502)
        self.attempts: Dict[str, str] = dict(attempts or {})
