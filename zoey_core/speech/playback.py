"""语音播放队列。

PlaybackQueue 保证所有合成片段按入队顺序逐个播放，任何时刻最多一个片段在播放：

- speak(text)：未配置远程合成时直接使用本地合成（不入队）；否则远程合成后入队，
  队列空闲时立即开始播放。远程合成失败时本条文本降级为本地合成。
- 播放结束与播放出错同等处理：释放片段，开始下一个，队列为空则回到空闲。
- stop()：清空等待中的片段，立即停止并释放当前片段，取消本地朗读。可重复调用。
- 本地朗读进行中时不开始新片段，等本地朗读结束后再继续播放队列，两路声音不重叠。
  反过来，远程片段播放期间发生的降级朗读会立即开始。

队列状态只由本类的方法修改，并由一把锁保护；播放器的 play()/stop() 在锁内调用，
因此播放器不得在 play() 内同步回调 on_finished。
"""

import logging
import threading
from collections import deque
from typing import Any, Deque, Optional

from zoey_core.config.settings import settings
from zoey_core.domain.exceptions import SynthesisError
from zoey_core.infrastructure.logging.logger import log_event
from zoey_core.speech.player import AudioPlayer, SoundDevicePlayer
from zoey_core.speech.segment import AudioSegment
from zoey_core.speech.synthesis import ElevenLabsSynthesizer, SystemSpeechSynthesizer


class PlaybackQueue:
    def __init__(
        self,
        cfg: Any = settings,
        synthesizer: Optional[ElevenLabsSynthesizer] = None,
        local: Optional[SystemSpeechSynthesizer] = None,
        player: Optional[AudioPlayer] = None,
    ):
        self._settings = cfg
        self._synthesizer = synthesizer if synthesizer is not None else ElevenLabsSynthesizer(cfg)
        self._local = local if local is not None else SystemSpeechSynthesizer(cfg)
        self._local.on_idle = self._on_local_idle
        self._player = player
        self._lock = threading.Lock()
        self._pending: Deque[AudioSegment] = deque()
        self._active: Optional[AudioSegment] = None
        # stop() 递增；合成期间发生过 stop() 的片段不再入队
        self._generation = 0
        self.last_error: Optional[str] = None

    # ---- 状态 ----

    @property
    def is_speaking(self) -> bool:
        with self._lock:
            playing = self._active is not None
        return playing or self._local.is_active

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def active_segment(self) -> Optional[AudioSegment]:
        with self._lock:
            return self._active

    # ---- 操作 ----

    def speak(self, text: str) -> None:
        if not text or not text.strip():
            return
        if not self._synthesizer.configured:
            self._local.speak(text)
            return

        self.last_error = None
        with self._lock:
            generation = self._generation
        try:
            segment = self._synthesizer.synthesize(text)
        except SynthesisError as exc:
            self.last_error = exc.message
            log_event(
                logging.WARNING,
                "Remote synthesis failed, using local speech",
                {"synth": self._synthesizer.name},
                error_code=exc.code,
                http_status=exc.http_status,
            )
            self._local.speak(text)
            return
        self.enqueue(segment, generation=generation)

    def enqueue(self, segment: AudioSegment, generation: Optional[int] = None) -> None:
        """把已合成的片段加入队尾；队列空闲时立即开始播放。"""

        with self._lock:
            if generation is not None and generation != self._generation:
                segment.release()
                log_event(logging.INFO, "Discarded segment synthesized before stop", {"segment_id": segment.id})
                return
            self._pending.append(segment)
            if self._active is None:
                self._start_next_locked()

    def stop(self) -> None:
        with self._lock:
            self._generation += 1
            dropped = list(self._pending)
            self._pending.clear()
            active, self._active = self._active, None
            if active is not None and self._player is not None:
                self._player.stop()
        for segment in dropped:
            segment.release()
        if active is not None:
            active.release()
        self._local.cancel()
        if active is not None or dropped:
            log_event(
                logging.INFO,
                "Speech stopped",
                {},
                dropped=len(dropped),
                active_segment=active.id if active is not None else None,
            )

    def close(self) -> None:
        self.stop()

    # ---- 内部 ----

    def _on_finished(self, segment: AudioSegment) -> None:
        with self._lock:
            segment.release()
            if segment is not self._active:
                return
            self._active = None
            self._start_next_locked()

    def _start_next_locked(self) -> None:
        if self._local.is_active:
            return
        while self._pending:
            segment = self._pending.popleft()
            self._active = segment
            try:
                self._get_player().play(segment, self._on_finished)
                return
            except (OSError, RuntimeError) as exc:
                log_event(logging.WARNING, "Audio output unavailable", {"segment_id": segment.id}, error=str(exc))
                segment.release()
                self._active = None

    def _on_local_idle(self) -> None:
        with self._lock:
            if self._active is None:
                self._start_next_locked()

    def _get_player(self) -> AudioPlayer:
        if self._player is None:
            self._player = SoundDevicePlayer()
        return self._player
