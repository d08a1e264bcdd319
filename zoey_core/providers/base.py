"""Provider 抽象接口与流式 HTTP 公共逻辑。

FallbackEngine 不直接依赖具体厂商的 HTTP 细节，而是依赖 ProviderClient 协议：

- 每个厂商实现一个 ProviderClient（OllamaClient / GeminiClient / GroqClient）。
- 负责：把对话历史转成厂商请求体，把流式响应解码为文本增量。

传输层失败统一转换为 domain.exceptions 中的异常，由 FallbackEngine 捕获后切换 Provider。
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Protocol

import httpx

from zoey_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from zoey_core.domain.models import ConversationMessage
from zoey_core.infrastructure.logging.logger import log_event
from zoey_core.providers.registry import ProviderConfig


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志。
    - chat_stream(messages): 执行一次流式对话调用，按到达顺序产出文本增量。
    """

    name: str

    def chat_stream(self, messages: List[ConversationMessage]) -> Iterator[str]:
        ...


class StreamingHttpClient:
    """基于 httpx 的流式 POST 客户端基类。

    子类实现 _endpoint / _build_payload / _decode_stream，
    本类负责发请求、状态码检查与异常转换。
    """

    name = "base"

    def __init__(self, config: ProviderConfig, timeout: float = 30.0):
        self._config = config
        self._timeout = timeout

    @property
    def config(self) -> ProviderConfig:
        return self._config

    def chat_stream(self, messages: List[ConversationMessage]) -> Iterator[str]:
        if not self._config.is_eligible:
            raise ValidationError(
                code="PROVIDER_INELIGIBLE",
                message=f"{self.name}: {self._config.ineligible_reason}",
            )
        payload = self._build_payload(messages)
        yield from self._post_stream(
            self._endpoint(),
            payload,
            headers=self._headers(),
            params=self._params(),
        )

    # ---- 子类实现 ----

    def _endpoint(self) -> str:
        raise NotImplementedError

    def _build_payload(self, messages: List[ConversationMessage]) -> Dict[str, Any]:
        raise NotImplementedError

    def _decode_stream(self, chunks: Iterator[str]) -> Iterator[str]:
        raise NotImplementedError

    def _extract_text(self, frame: Dict[str, Any]) -> str:
        raise NotImplementedError

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def _params(self) -> Optional[Dict[str, str]]:
        return None

    # ---- 公共逻辑 ----

    def _post_stream(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        params: Optional[Dict[str, str]] = None,
    ) -> Iterator[str]:
        try:
            with httpx.Client(timeout=self._timeout, trust_env=False) as client:
                with client.stream("POST", url, json=payload, headers=headers, params=params) as resp:
                    if resp.status_code == 429:
                        raise RateLimitError(code="RATE_LIMIT", message=f"{self.name} rate limit", http_status=429)
                    if resp.status_code >= 400:
                        resp.read()
                        raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
                    yield from self._decode_stream(self._iter_body(resp))
        except (httpx.HTTPError, httpx.StreamError) as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or e.__class__.__name__)
        except (httpx.InvalidURL, ValueError) as e:
            # 地址格式错误、API Key 含非 ASCII 字符等，请求根本无法构造
            raise ValidationError(code="INVALID_REQUEST", message=f"{self.name}: {e}")

    def _iter_body(self, resp: Any) -> Iterator[str]:
        """逐块读取响应文本；完全没有响应体时视为失败。"""

        received = False
        for text in resp.iter_text():
            if not text:
                continue
            received = True
            yield text
        if not received:
            raise NetworkError(code="EMPTY_RESPONSE", message=f"{self.name} returned no response body")

    def _frame_text(self, frame: Any) -> str:
        """取出一帧中的文本增量。

        错误帧抛 ApiError；结构不符合预期的帧（字段类型不对等）丢弃并返回空串。
        """

        if not isinstance(frame, dict):
            return ""
        if frame.get("error"):
            self._raise_error_frame(self.name, frame)
        try:
            text = self._extract_text(frame)
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            log_event(
                logging.DEBUG,
                "Dropped malformed frame",
                {"provider": self.name},
                reason=exc.__class__.__name__,
            )
            return ""
        return text if isinstance(text, str) else ""

    @staticmethod
    def _raise_error_frame(name: str, frame: Dict[str, Any]) -> None:
        """Provider 在流内返回的错误帧（如 {"error": ...}）。"""

        error = frame.get("error")
        if isinstance(error, dict):
            message = error.get("message") or str(error)
            status = error.get("code") if isinstance(error.get("code"), int) else 400
        else:
            message = str(error)
            status = 400
        raise ApiError(code="API_ERROR", message=f"{name}: {message}", http_status=status)
