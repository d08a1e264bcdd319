from types import SimpleNamespace

import pytest

from zoey_core.domain.exceptions import ValidationError
from zoey_core.domain.models import ProviderId
from zoey_core.providers import PROVIDER_CLIENTS
from zoey_core.providers.gemini_client import GeminiClient
from zoey_core.providers.groq_client import GroqClient
from zoey_core.providers.ollama_client import OllamaClient
from zoey_core.providers.registry import (
    ProviderConfig,
    get_provider_defaults,
    resolve_provider_config,
    snapshot_provider_configs,
)


def _cfg(**overrides):
    values = dict(
        provider_priority=["ollama", "gemini", "groq"],
        ollama_url="http://localhost:11434",
        ollama_model="llama2",
        gemini_api_key=None,
        gemini_base_url="https://generativelanguage.googleapis.com/v1beta",
        gemini_model="gemini-1.5-flash",
        groq_api_key="groq-key",
        groq_base_url="https://api.groq.com/openai/v1/",
        groq_model="llama-3.3-70b-versatile",
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_client_dispatch_table():
    assert PROVIDER_CLIENTS[ProviderId.OLLAMA] is OllamaClient
    assert PROVIDER_CLIENTS[ProviderId.GEMINI] is GeminiClient
    assert PROVIDER_CLIENTS[ProviderId.GROQ] is GroqClient


def test_get_provider_defaults():
    assert get_provider_defaults("Ollama").requires_api_key is False
    assert get_provider_defaults("gemini").key_field == "gemini_api_key"
    with pytest.raises(KeyError):
        get_provider_defaults("unknown")


def test_resolve_provider_config_eligibility():
    cfg = _cfg()
    groq = resolve_provider_config(ProviderId.GROQ, cfg)
    assert groq.base_url == "https://api.groq.com/openai/v1"
    assert groq.is_eligible

    gemini = resolve_provider_config(ProviderId.GEMINI, cfg)
    assert not gemini.is_eligible
    assert gemini.ineligible_reason == "missing api_key"

    ollama = resolve_provider_config(ProviderId.OLLAMA, _cfg(ollama_url=""))
    assert not ollama.is_eligible
    assert ollama.ineligible_reason == "missing base_url"


def test_resolve_falls_back_to_default_model():
    ollama = resolve_provider_config(ProviderId.OLLAMA, _cfg(ollama_model=""))
    assert ollama.model == "llama2"


def test_snapshot_keeps_order_and_dedupes():
    cfg = _cfg(provider_priority=["groq", "Ollama", "groq"])
    snapshot = snapshot_provider_configs(cfg)
    assert [provider for provider, _ in snapshot] == [ProviderId.GROQ, ProviderId.OLLAMA]

    cfg.groq_api_key = None
    # 快照是不可变的值，之后修改 settings 不影响已取出的配置
    assert snapshot[0][1].api_key == "groq-key"


def test_snapshot_empty_priority():
    assert snapshot_provider_configs(_cfg(provider_priority=[])) == []


def test_client_refuses_ineligible_config(fake_http):
    config = ProviderConfig(name="groq", base_url="https://api.groq.com/openai/v1", model="m", api_key=None)
    with pytest.raises(ValidationError) as excinfo:
        list(GroqClient(config).chat_stream([]))
    assert excinfo.value.code == "PROVIDER_INELIGIBLE"
    assert fake_http.requests == []
