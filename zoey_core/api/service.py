"""对外 API 服务模块。

提供简化的函数接口供上层应用（UI）调用。
"""

from typing import Any, Callable, Dict, Optional, Sequence

from zoey_core.agents.assistant import VoiceAssistant
from zoey_core.agents.fallback_engine import FallbackEngine
from zoey_core.config.settings import settings
from zoey_core.domain.models import HistoryItem, StreamEvent
from zoey_core.infrastructure.logging.logger import logger
from zoey_core.speech.playback import PlaybackQueue


_engine: Optional[FallbackEngine] = None
_speech: Optional[PlaybackQueue] = None
_assistant: Optional[VoiceAssistant] = None


def get_default_engine() -> FallbackEngine:
    """获取默认的 FallbackEngine 实例（单例）。"""
    global _engine
    if _engine is None:
        _engine = FallbackEngine(settings)
    return _engine


def get_default_speech() -> PlaybackQueue:
    """获取默认的 PlaybackQueue 实例（单例）。"""
    global _speech
    if _speech is None:
        _speech = PlaybackQueue(settings)
    return _speech


def get_default_assistant() -> VoiceAssistant:
    """获取默认的 VoiceAssistant 实例（单例），与上面两个单例共享引擎和队列。"""
    global _assistant
    if _assistant is None:
        _assistant = VoiceAssistant(
            engine=get_default_engine(),
            speech=get_default_speech(),
            cfg=settings,
        )
    return _assistant


def send_message(history: Sequence[HistoryItem], on_event: Callable[[StreamEvent], None]) -> Dict[str, Any]:
    """发送对话历史，事件通过 on_event 回调。

    Args:
        history: ConversationMessage 或 {"role", "content"} 字典组成的列表
        on_event: 每个 StreamEvent 的回调，最后一个事件一定是 complete

    Returns:
        包含 ok、active_provider、error 的字典
    """
    engine = get_default_engine()
    try:
        ok = engine.send_message(history, on_event)
    except Exception as e:
        logger.error(f"Send message failed: {e}", extra={"extra": {"error": str(e)}})
        raise
    return {
        "ok": ok,
        "active_provider": engine.active_provider.value if engine.active_provider else None,
        "error": engine.last_error,
    }


def speak(text: str) -> None:
    get_default_speech().speak(text)


def stop_speaking() -> None:
    get_default_speech().stop()


def get_status() -> Dict[str, Any]:
    """返回引擎与语音队列的当前状态。"""
    return get_default_assistant().status()


def shutdown() -> None:
    """停止语音并丢弃单例。"""
    global _engine, _speech, _assistant
    if _speech is not None:
        _speech.close()
    _engine = None
    _speech = None
    _assistant = None
