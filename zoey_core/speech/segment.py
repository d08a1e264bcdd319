"""合成语音片段。"""

from dataclasses import dataclass, field
from typing import Optional
from uuid import uuid4


@dataclass(eq=False)
class AudioSegment:
    """一次合成得到的音频。

    - data: 编码后的音频（如 mp3），release() 之后为 None。
    - text: 对应的原文，只用于日志。
    - mime_type: 音频类型，播放器据此解码。

    片段由 PlaybackQueue 持有，播放结束（无论成功或出错）后释放。
    """

    data: Optional[bytes]
    text: str = ""
    mime_type: str = "audio/mpeg"
    id: str = field(default_factory=lambda: f"seg-{uuid4().hex[:12]}")

    @property
    def released(self) -> bool:
        return self.data is None

    def release(self) -> None:
        self.data = None
