"""ZOEY Core 顶层包。

该包提供 ZOEY 语音助手的核心实现：
多 Provider 流式对话回退引擎、语音合成与顺序播放队列，
以及配置加载、领域模型与日志等基础能力。
"""

from zoey_core.agents.assistant import VoiceAssistant
from zoey_core.agents.fallback_engine import FallbackEngine
from zoey_core.domain.models import ConversationMessage, ProviderId, StreamEvent
from zoey_core.speech.playback import PlaybackQueue

__all__ = [
    "ConversationMessage",
    "FallbackEngine",
    "PlaybackQueue",
    "ProviderId",
    "StreamEvent",
    "VoiceAssistant",
]
