"""Groq Provider 适配器。

接口风格与 OpenAI 兼容，使用 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>
- 响应: SSE，增量文本在 choices[0].delta.content，``data: [DONE]`` 表示结束。
"""

from typing import Any, Dict, Iterator, List

from zoey_core.domain.models import ConversationMessage
from zoey_core.providers.base import StreamingHttpClient
from zoey_core.providers.framing import SSE_DONE, SseDecoder


class GroqClient(StreamingHttpClient):
    """Groq Provider 客户端实现。"""

    name = "groq"

    def _endpoint(self) -> str:
        return f"{self._config.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, messages: List[ConversationMessage]) -> Dict[str, Any]:
        return {
            "model": self._config.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "stream": True,
        }

    def _decode_stream(self, chunks: Iterator[str]) -> Iterator[str]:
        decoder = SseDecoder()
        for chunk in chunks:
            for frame in decoder.feed(chunk):
                if frame is SSE_DONE:
                    return
                text = self._frame_text(frame)
                if text:
                    yield text
        for frame in decoder.flush():
            if frame is SSE_DONE:
                return
            text = self._frame_text(frame)
            if text:
                yield text

    def _extract_text(self, frame: Dict[str, Any]) -> str:
        choices = frame.get("choices")
        if not choices:
            return ""
        return choices[0].get("delta", {}).get("content") or ""
