"""语音输出。

- segment: AudioSegment 合成音频片段。
- synthesis: ElevenLabs 远程合成与系统本地合成。
- player: 基于 sounddevice 的播放器。
- playback: PlaybackQueue 顺序播放队列。
"""

from zoey_core.speech.playback import PlaybackQueue
from zoey_core.speech.segment import AudioSegment

__all__ = ["AudioSegment", "PlaybackQueue"]
