"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
优先级：初始化参数 > 环境变量 > .env > config.yaml > secrets。

配置对象在运行期可以被 UI 层修改（例如调整 Provider 优先级），
FallbackEngine 会在每次调用开始时读取一次快照，不会缓存旧值。
"""

import json
import os
import warnings
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from zoey_core.domain.models import ProviderId


DEFAULT_PROVIDER_PRIORITY = [p.value for p in (ProviderId.OLLAMA, ProviderId.GEMINI, ProviderId.GROQ)]


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("ZOEY_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    provider_priority: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_PROVIDER_PRIORITY),
        description="Provider 尝试顺序，例如 ollama,gemini,groq",
    )

    # Ollama（本地）
    ollama_url: str = Field(default="http://localhost:11434", description="Ollama 服务地址，留空表示禁用")
    ollama_model: str = Field(default="llama2", description="Ollama 模型名")

    # Gemini
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API 密钥")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini API 基础URL",
    )
    gemini_model: str = Field(default="gemini-1.5-flash", description="Gemini 模型名")

    # Groq
    groq_api_key: Optional[str] = Field(default=None, description="Groq API 密钥")
    groq_base_url: str = Field(default="https://api.groq.com/openai/v1", description="Groq API 基础URL")
    groq_model: str = Field(default="llama-3.3-70b-versatile", description="Groq 模型名")

    # ---- 语音输出 ----
    voice_output_enabled: bool = Field(default=True, description="回答完成后是否朗读")
    elevenlabs_api_key: Optional[str] = Field(default=None, description="ElevenLabs API 密钥，留空使用本地合成")
    elevenlabs_base_url: str = Field(default="https://api.elevenlabs.io/v1", description="ElevenLabs API 基础URL")
    elevenlabs_voice_id: str = Field(default="EXAVITQu4vr4xnSDxMaL", description="ElevenLabs 声音 ID")
    elevenlabs_model_id: str = Field(default="eleven_multilingual_v2", description="ElevenLabs 模型 ID")
    local_tts_rate: int = Field(default=175, ge=80, le=400, description="本地合成语速（词/分钟）")

    # ---- 通用 ----
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("gemini_api_key", "groq_api_key", "elevenlabs_api_key", mode="before")
    @classmethod
    def blank_key_to_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("ollama_url", "gemini_base_url", "groq_base_url", "elevenlabs_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: Any) -> str:
        return str(v or "").strip().rstrip("/")

    @field_validator("provider_priority", mode="before")
    @classmethod
    def parse_priority(cls, v: Any) -> List[str]:
        """接受 JSON 列表、逗号分隔字符串或 list；去重并校验名称。"""

        if v is None:
            return list(DEFAULT_PROVIDER_PRIORITY)
        if isinstance(v, str):
            text = v.strip()
            if text.startswith("["):
                v = json.loads(text)
            else:
                v = [part for part in text.split(",") if part.strip()]
        result: List[str] = []
        for item in v:
            name = ProviderId.parse(item).value
            if name not in result:
                result.append(name)
        return result

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
