"""语音助手会话。

把 FallbackEngine 与 PlaybackQueue 组合成面向 UI 的便捷接口：
维护对话历史，流式获取回答，回答完成后按配置朗读。
"""

from typing import Any, Callable, Dict, List, Optional

from zoey_core.agents.fallback_engine import FallbackEngine
from zoey_core.config.settings import settings
from zoey_core.domain.models import ConversationMessage
from zoey_core.speech.playback import PlaybackQueue


TokenCallback = Callable[[str], None]


class VoiceAssistant:
    """单个会话的助手控制器。

    同一时刻只允许一次 ask() 在进行中，正在加载时的新请求直接忽略。
    """

    def __init__(
        self,
        engine: Optional[FallbackEngine] = None,
        speech: Optional[PlaybackQueue] = None,
        cfg: Any = settings,
    ):
        """初始化助手会话。

        Args:
            engine: Provider 回退引擎（可选，默认按 cfg 创建）
            speech: 语音播放队列（可选，默认按 cfg 创建）
            cfg: 配置对象，voice_output_enabled 在每次回答结束时读取
        """
        self._settings = cfg
        self._engine = engine or FallbackEngine(cfg)
        self._speech = speech or PlaybackQueue(cfg)
        self._history: List[ConversationMessage] = []

    @property
    def history(self) -> List[ConversationMessage]:
        return list(self._history)

    @property
    def engine(self) -> FallbackEngine:
        return self._engine

    @property
    def speech(self) -> PlaybackQueue:
        return self._speech

    def ask(self, user_input: str, on_token: Optional[TokenCallback] = None) -> Optional[str]:
        """发送一条用户消息并返回完整回答。

        Returns:
            回答文本；输入为空、正在加载或没有任何回答时返回 None。
        """
        text = (user_input or "").strip()
        if not text or self._engine.is_loading:
            return None
        self._history.append(ConversationMessage(role="user", content=text))
        return self._respond(on_token)

    def retry(self, on_token: Optional[TokenCallback] = None) -> Optional[str]:
        """重新发送最后一条用户消息。

        上一次没有得到回答时直接重发，不重复追加用户消息。
        """
        if self._engine.is_loading:
            return None
        last_user = next((m for m in reversed(self._history) if m.role == "user"), None)
        if last_user is None:
            return None
        self._engine.clear_error()
        if self._history[-1] is last_user:
            return self._respond(on_token)
        return self.ask(last_user.content, on_token=on_token)

    def toggle_voice_output(self) -> bool:
        enabled = not bool(getattr(self._settings, "voice_output_enabled", True))
        self._settings.voice_output_enabled = enabled
        if self._speech.is_speaking:
            self._speech.stop()
        return enabled

    def stop_speaking(self) -> None:
        self._speech.stop()

    def clear_error(self) -> None:
        self._engine.clear_error()

    def reset(self) -> None:
        self._speech.stop()
        self._engine.clear_error()
        self._history.clear()

    def status(self) -> Dict[str, Any]:
        """返回当前状态，供 UI 展示。"""
        active = self._engine.active_provider
        return {
            "is_loading": self._engine.is_loading,
            "active_provider": active.value if active else None,
            "error": self._engine.last_error,
            "is_speaking": self._speech.is_speaking,
            "pending_segments": self._speech.pending_count,
            "voice_error": self._speech.last_error,
            "voice_output_enabled": bool(getattr(self._settings, "voice_output_enabled", True)),
            "message_count": len(self._history),
        }

    def _respond(self, on_token: Optional[TokenCallback]) -> Optional[str]:
        pieces: List[str] = []
        for event in self._engine.stream(list(self._history)):
            if event.kind != "token":
                continue
            pieces.append(event.text)
            if on_token:
                on_token(event.text)
        reply = "".join(pieces)
        if not reply:
            return None
        self._history.append(ConversationMessage(role="assistant", content=reply))
        if getattr(self._settings, "voice_output_enabled", True):
            self._speech.speak(reply)
        return reply
