"""语音合成：ElevenLabs 远程合成 + 系统本地合成。

- ElevenLabsSynthesizer：POST {base_url}/text-to-speech/{voice_id}/stream，
  认证头 xi-api-key，返回 mp3 音频，封装为 AudioSegment 交给 PlaybackQueue。
- SystemSpeechSynthesizer：调用系统语音命令（macOS 的 say，其他平台的 espeak-ng / espeak），
  不产生音频文件，直接朗读；用于未配置 API Key 或远程合成失败时的降级。
"""

import logging
import platform
import shutil
import subprocess
import threading
from collections import deque
from typing import Any, Callable, Deque, List, Optional

import httpx

from zoey_core.config.settings import settings
from zoey_core.domain.exceptions import SynthesisError
from zoey_core.infrastructure.logging.logger import log_event
from zoey_core.speech.segment import AudioSegment


VOICE_SETTINGS = {
    "stability": 0.5,
    "similarity_boost": 0.75,
    "style": 0.5,
    "use_speaker_boost": True,
}


class ElevenLabsSynthesizer:
    """ElevenLabs 远程合成。配置在每次调用时读取。"""

    name = "elevenlabs"

    def __init__(self, cfg: Any = settings):
        self._settings = cfg

    @property
    def configured(self) -> bool:
        return bool((getattr(self._settings, "elevenlabs_api_key", None) or "").strip())

    def synthesize(self, text: str) -> AudioSegment:
        if not self.configured:
            raise SynthesisError(code="MISSING_API_KEY", message="ELEVENLABS_API_KEY not set")
        base = (getattr(self._settings, "elevenlabs_base_url", None) or "https://api.elevenlabs.io/v1").rstrip("/")
        voice_id = getattr(self._settings, "elevenlabs_voice_id", None) or "EXAVITQu4vr4xnSDxMaL"
        payload = {
            "text": text,
            "model_id": getattr(self._settings, "elevenlabs_model_id", None) or "eleven_multilingual_v2",
            "voice_settings": dict(VOICE_SETTINGS),
        }
        try:
            with httpx.Client(timeout=getattr(self._settings, "http_timeout", 30.0), trust_env=False) as client:
                resp = client.post(
                    f"{base}/text-to-speech/{voice_id}/stream",
                    json=payload,
                    headers={
                        "xi-api-key": self._settings.elevenlabs_api_key,
                        "Content-Type": "application/json",
                        "Accept": "audio/mpeg",
                    },
                )
        except httpx.HTTPError as e:
            raise SynthesisError(code="NETWORK_ERROR", message=str(e) or e.__class__.__name__)
        if resp.status_code >= 400:
            raise SynthesisError(
                code="API_ERROR",
                message=self._error_message(resp),
                http_status=resp.status_code,
            )
        audio = resp.content
        if not audio:
            raise SynthesisError(code="EMPTY_RESPONSE", message="ElevenLabs returned no audio")
        mime_type = resp.headers.get("content-type", "audio/mpeg").split(";")[0].strip() or "audio/mpeg"
        return AudioSegment(data=audio, text=text, mime_type=mime_type)

    @staticmethod
    def _error_message(resp: Any) -> str:
        """优先使用 API 返回的 detail.message。"""

        try:
            data = resp.json()
        except ValueError:
            return "ElevenLabs API error"
        detail = data.get("detail") if isinstance(data, dict) else None
        if isinstance(detail, dict) and detail.get("message"):
            return str(detail["message"])
        if isinstance(detail, str) and detail:
            return detail
        return "ElevenLabs API error"


class SystemSpeechSynthesizer:
    """系统本地合成。

    朗读请求按顺序排队，由一个后台线程逐条执行系统命令（文本经 stdin 传入）。
    cancel() 清空排队请求并终止正在朗读的进程。
    """

    name = "system"

    def __init__(self, cfg: Any = settings, command: Optional[List[str]] = None):
        self._settings = cfg
        self._command = command
        self._lock = threading.Lock()
        self._pending: Deque[str] = deque()
        self._proc: Optional[subprocess.Popen] = None
        self._worker: Optional[threading.Thread] = None
        # 全部朗读结束、后台线程退出时回调（在后台线程中调用）
        self.on_idle: Optional[Callable[[], None]] = None

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._proc is not None or bool(self._pending)

    def speak(self, text: str) -> None:
        if not text or not text.strip():
            return
        if self._resolve_command() is None:
            log_event(logging.WARNING, "No local speech command available", {"synth": self.name})
            return
        with self._lock:
            self._pending.append(text)
            if self._worker is None:
                self._worker = threading.Thread(target=self._run, name="zoey-local-tts", daemon=True)
                self._worker.start()

    def cancel(self) -> None:
        with self._lock:
            self._pending.clear()
            proc, self._proc = self._proc, None
            if proc is not None and proc.poll() is None:
                proc.terminate()

    def _resolve_command(self) -> Optional[List[str]]:
        if self._command is not None:
            return list(self._command)
        rate = str(getattr(self._settings, "local_tts_rate", 175))
        if platform.system() == "Darwin" and shutil.which("say"):
            return ["say", "-r", rate, "-f", "-"]
        for binary in ("espeak-ng", "espeak"):
            if shutil.which(binary):
                return [binary, "-s", rate, "--stdin"]
        return None

    def _run(self) -> None:
        while True:
            with self._lock:
                if not self._pending:
                    self._worker = None
                    break
                text = self._pending.popleft()
                cmd = self._resolve_command()
                try:
                    proc = subprocess.Popen(
                        cmd,
                        stdin=subprocess.PIPE,
                        stdout=subprocess.DEVNULL,
                        stderr=subprocess.DEVNULL,
                    )
                except (OSError, TypeError) as exc:
                    log_event(logging.WARNING, "Local speech failed", {"synth": self.name}, error=str(exc))
                    continue
                self._proc = proc
            try:
                proc.communicate(input=text.encode("utf-8"))
            except OSError as exc:
                log_event(logging.WARNING, "Local speech interrupted", {"synth": self.name}, error=str(exc))
            finally:
                with self._lock:
                    if self._proc is proc:
                        self._proc = None
        if self.on_idle is not None:
            self.on_idle()
