"""音频播放。

SoundDevicePlayer 用 soundfile 解码 AudioSegment，用 sounddevice 输出，
每个片段在独立的后台线程中播放，播放结束或出错后回调 on_finished(segment)。
on_finished 总是在后台线程中调用，不会在 play() 内同步调用。
"""

import io
import logging
import threading
from typing import Any, Callable, Optional, Protocol

from zoey_core.infrastructure.logging.logger import log_event
from zoey_core.speech.segment import AudioSegment


FinishedCallback = Callable[[AudioSegment], None]


class AudioPlayer(Protocol):
    """播放器协议：play() 立即返回，stop() 立即停止当前输出。"""

    def play(self, segment: AudioSegment, on_finished: FinishedCallback) -> None:
        ...

    def stop(self) -> None:
        ...


class _Playback:
    def __init__(self, segment: AudioSegment):
        self.segment = segment
        self.cancelled = threading.Event()


class SoundDevicePlayer:
    """sounddevice + soundfile 播放器。"""

    def __init__(self) -> None:
        # PortAudio / libsndfile 缺失时这里抛 OSError，由调用方处理
        import sounddevice
        import soundfile

        self._sd: Any = sounddevice
        self._sf: Any = soundfile
        self._lock = threading.Lock()
        self._current: Optional[_Playback] = None

    def play(self, segment: AudioSegment, on_finished: FinishedCallback) -> None:
        playback = _Playback(segment)
        with self._lock:
            self._current = playback
        thread = threading.Thread(
            target=self._run,
            args=(playback, on_finished),
            name=f"zoey-play-{segment.id}",
            daemon=True,
        )
        thread.start()

    def stop(self) -> None:
        with self._lock:
            if self._current is not None:
                self._current.cancelled.set()
                self._current = None
            self._sd.stop()

    def _run(self, playback: _Playback, on_finished: FinishedCallback) -> None:
        segment = playback.segment
        try:
            data = segment.data
            if data is None:
                return
            samples, sample_rate = self._sf.read(io.BytesIO(data), dtype="float32")
            with self._lock:
                if playback.cancelled.is_set():
                    return
                self._sd.play(samples, sample_rate)
            self._sd.wait()
        except (RuntimeError, ValueError, TypeError, OSError, self._sd.PortAudioError) as exc:
            log_event(
                logging.WARNING,
                "Audio playback failed",
                {"segment_id": segment.id},
                mime_type=segment.mime_type,
                error=str(exc),
            )
        finally:
            with self._lock:
                if self._current is playback:
                    self._current = None
            on_finished(segment)
