"""Provider 默认配置与运行期配置解析。

本模块把"Provider 默认值"与"用户配置"分开：

- ProviderDefaults：每个 Provider 的默认 base_url、默认模型、是否必须 API Key。
- ProviderConfig：某次调用实际使用的连接数据（由 settings 覆盖默认值后得到，不可变）。

FallbackEngine 在每次调用开始时通过 snapshot_provider_configs() 读取一次配置，
调用过程中 settings 的修改不会影响正在进行的调用。"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from zoey_core.domain.models import ProviderId


@dataclass(frozen=True)
class ProviderDefaults:
    """单个 Provider 的默认配置。"""

    provider: ProviderId
    base_url: str
    model: str
    requires_api_key: bool
    # settings 中对应字段名
    url_field: str
    model_field: str
    key_field: Optional[str] = None


@dataclass(frozen=True)
class ProviderConfig:
    """某个 Provider 的连接配置。

    base_url 为空，或需要 API Key 而未配置时，该 Provider 不可用（直接跳过，不发请求）。
    """

    name: str
    base_url: str
    model: str
    api_key: Optional[str] = None
    requires_api_key: bool = True

    @property
    def is_eligible(self) -> bool:
        if not (self.base_url or "").strip():
            return False
        if self.requires_api_key and not (self.api_key or "").strip():
            return False
        return True

    @property
    def ineligible_reason(self) -> Optional[str]:
        if not (self.base_url or "").strip():
            return "missing base_url"
        if self.requires_api_key and not (self.api_key or "").strip():
            return "missing api_key"
        return None


# Ollama：本地服务，无需 API Key
OLLAMA_DEFAULTS = ProviderDefaults(
    provider=ProviderId.OLLAMA,
    base_url="http://localhost:11434",
    model="llama2",
    requires_api_key=False,
    url_field="ollama_url",
    model_field="ollama_model",
)

# Gemini：streamGenerateContent 接口
GEMINI_DEFAULTS = ProviderDefaults(
    provider=ProviderId.GEMINI,
    base_url="https://generativelanguage.googleapis.com/v1beta",
    model="gemini-1.5-flash",
    requires_api_key=True,
    url_field="gemini_base_url",
    model_field="gemini_model",
    key_field="gemini_api_key",
)

# Groq：OpenAI 兼容的 chat/completions 接口
GROQ_DEFAULTS = ProviderDefaults(
    provider=ProviderId.GROQ,
    base_url="https://api.groq.com/openai/v1",
    model="llama-3.3-70b-versatile",
    requires_api_key=True,
    url_field="groq_base_url",
    model_field="groq_model",
    key_field="groq_api_key",
)


PROVIDER_REGISTRY: Mapping[ProviderId, ProviderDefaults] = {
    ProviderId.OLLAMA: OLLAMA_DEFAULTS,
    ProviderId.GEMINI: GEMINI_DEFAULTS,
    ProviderId.GROQ: GROQ_DEFAULTS,
}


def get_provider_defaults(name: Any) -> ProviderDefaults:
    """根据名称获取 ProviderDefaults，名称不区分大小写。"""

    try:
        return PROVIDER_REGISTRY[ProviderId.parse(name)]
    except ValueError:
        raise KeyError(f"Unknown provider: {name!r}")


def resolve_provider_config(provider: ProviderId, cfg: Any) -> ProviderConfig:
    """用 settings 覆盖默认值，得到 ProviderConfig。

    Ollama 的地址允许显式置空来禁用本地 Provider，因此只在字段缺失时才回退默认值。
    """

    defaults = get_provider_defaults(provider)
    base_url = getattr(cfg, defaults.url_field, defaults.base_url)
    if base_url is None:
        base_url = defaults.base_url
    model = getattr(cfg, defaults.model_field, None) or defaults.model
    api_key = getattr(cfg, defaults.key_field, None) if defaults.key_field else None
    return ProviderConfig(
        name=provider.value,
        base_url=str(base_url).strip().rstrip("/"),
        model=model,
        api_key=api_key,
        requires_api_key=defaults.requires_api_key,
    )


def snapshot_provider_configs(cfg: Any) -> List[Tuple[ProviderId, ProviderConfig]]:
    """按优先级读取一次所有 Provider 的配置快照（重复项只保留第一次出现）。"""

    raw_priority = getattr(cfg, "provider_priority", None) or []
    ordered: List[ProviderId] = []
    for name in list(raw_priority):
        provider = ProviderId.parse(name)
        if provider not in ordered:
            ordered.append(provider)
    configs: Dict[ProviderId, ProviderConfig] = {}
    for provider in ordered:
        configs[provider] = resolve_provider_config(provider, cfg)
    return [(provider, configs[provider]) for provider in ordered]
