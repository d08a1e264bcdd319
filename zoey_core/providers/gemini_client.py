"""Gemini Provider 适配器。

- URL: {base_url}/models/{model}:streamGenerateContent?key=<api_key>
- 请求: contents 列表，assistant 角色映射为 "model"。
- 响应: 持续输出的 JSON 数组，每个元素形如
  {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}，传输关闭即结束。
"""

from typing import Any, Dict, Iterator, List, Optional

from zoey_core.domain.models import ConversationMessage
from zoey_core.providers.base import StreamingHttpClient
from zoey_core.providers.framing import JsonArrayDecoder


ROLE_MAP = {"user": "user", "assistant": "model"}


class GeminiClient(StreamingHttpClient):
    """Gemini Provider 客户端实现。"""

    name = "gemini"

    def _endpoint(self) -> str:
        return f"{self._config.base_url}/models/{self._config.model}:streamGenerateContent"

    def _params(self) -> Optional[Dict[str, str]]:
        return {"key": self._config.api_key or ""}

    def _build_payload(self, messages: List[ConversationMessage]) -> Dict[str, Any]:
        return {
            "contents": [
                {"role": ROLE_MAP[m.role], "parts": [{"text": m.content}]}
                for m in messages
            ]
        }

    def _decode_stream(self, chunks: Iterator[str]) -> Iterator[str]:
        decoder = JsonArrayDecoder()
        for chunk in chunks:
            for frame in decoder.feed(chunk):
                text = self._frame_text(frame)
                if text:
                    yield text
        decoder.flush()

    def _extract_text(self, frame: Dict[str, Any]) -> str:
        candidates = frame.get("candidates")
        if not candidates:
            return ""
        parts = candidates[0].get("content", {}).get("parts") or []
        # 非文本 part（如 functionCall）没有 text 字段
        return "".join(part["text"] for part in parts if "text" in part)
