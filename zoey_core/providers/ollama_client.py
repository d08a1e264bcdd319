"""Ollama（本地）Provider 适配器。

- URL: {base_url}/api/chat
- 认证: 无
- 响应: 换行分隔的 JSON 对象，增量文本在 message.content，done=true 表示结束。
"""

from typing import Any, Dict, Iterator, List

from zoey_core.domain.models import ConversationMessage
from zoey_core.providers.base import StreamingHttpClient
from zoey_core.providers.framing import NdjsonDecoder


class OllamaClient(StreamingHttpClient):
    """Ollama Provider 客户端实现。"""

    name = "ollama"

    def _endpoint(self) -> str:
        return f"{self._config.base_url}/api/chat"

    def _build_payload(self, messages: List[ConversationMessage]) -> Dict[str, Any]:
        return {
            "model": self._config.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "stream": True,
        }

    def _decode_stream(self, chunks: Iterator[str]) -> Iterator[str]:
        decoder = NdjsonDecoder()
        for chunk in chunks:
            for frame in decoder.feed(chunk):
                text = self._frame_text(frame)
                if text:
                    yield text
                if isinstance(frame, dict) and frame.get("done") is True:
                    return
        for frame in decoder.flush():
            text = self._frame_text(frame)
            if text:
                yield text

    def _extract_text(self, frame: Dict[str, Any]) -> str:
        message = frame.get("message")
        if not message:
            return ""
        return message.get("content") or ""
