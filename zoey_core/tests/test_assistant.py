from types import SimpleNamespace

from zoey_core.agents.assistant import VoiceAssistant
from zoey_core.agents.fallback_engine import FallbackEngine
from zoey_core.domain.exceptions import NetworkError
from zoey_core.domain.models import ConversationMessage, ProviderId


class RecordingSpeech:
    def __init__(self):
        self.spoken = []
        self.stops = 0
        self.is_speaking = False
        self.pending_count = 0
        self.last_error = None

    def speak(self, text):
        self.spoken.append(text)
        self.is_speaking = True

    def stop(self):
        self.stops += 1
        self.is_speaking = False


def _client(outcomes):
    """每次调用依次取 outcomes 中的下一组产出。"""

    class Client:
        seen = []

        def __init__(self, config, timeout=30.0):
            self.name = config.name

        def chat_stream(self, messages):
            Client.seen.append(list(messages))
            for item in outcomes.pop(0):
                if isinstance(item, Exception):
                    raise item
                yield item

    return Client


def _assistant(outcomes, voice=True):
    cfg = SimpleNamespace(
        provider_priority=["ollama"],
        ollama_url="http://localhost:11434",
        ollama_model="llama2",
        http_timeout=5,
        voice_output_enabled=voice,
    )
    client = _client(outcomes)
    engine = FallbackEngine(cfg=cfg, clients={ProviderId.OLLAMA: client})
    speech = RecordingSpeech()
    return VoiceAssistant(engine=engine, speech=speech, cfg=cfg), speech, client


def test_ask_streams_records_history_and_speaks():
    assistant, speech, _ = _assistant([["Hel", "lo!"]])
    tokens = []
    reply = assistant.ask("  hi  ", on_token=tokens.append)

    assert reply == "Hello!"
    assert tokens == ["Hel", "lo!"]
    assert assistant.history == [
        ConversationMessage(role="user", content="hi"),
        ConversationMessage(role="assistant", content="Hello!"),
    ]
    assert speech.spoken == ["Hello!"]
    assert assistant.status()["active_provider"] == "ollama"


def test_voice_output_disabled_does_not_speak():
    assistant, speech, _ = _assistant([["ok"]], voice=False)
    assert assistant.ask("hi") == "ok"
    assert speech.spoken == []


def test_blank_input_is_ignored():
    assistant, _, client = _assistant([["unused"]])
    assert assistant.ask("   ") is None
    assert assistant.history == []
    assert client.seen == []


def test_retry_after_total_failure_does_not_duplicate_user_turn():
    assistant, speech, client = _assistant([[NetworkError(code="NETWORK_ERROR", message="down")], ["recovered"]])
    assert assistant.ask("hi") is None
    status = assistant.status()
    assert status["error"] == "All providers failed. Please check your settings."
    assert status["message_count"] == 1

    assert assistant.retry() == "recovered"
    assert assistant.status()["error"] is None
    assert [m.role for m in assistant.history] == ["user", "assistant"]
    assert client.seen[1] == [ConversationMessage(role="user", content="hi")]
    assert speech.spoken == ["recovered"]


def test_retry_after_answer_asks_again():
    assistant, _, client = _assistant([["first"], ["second"]])
    assistant.ask("hi")
    assert assistant.retry() == "second"
    assert [m.content for m in assistant.history] == ["hi", "first", "hi", "second"]
    assert len(client.seen[1]) == 3


def test_retry_without_history():
    assistant, _, _ = _assistant([])
    assert assistant.retry() is None


def test_toggle_voice_output_stops_current_speech():
    assistant, speech, _ = _assistant([["talking"]])
    assistant.ask("hi")
    assert speech.is_speaking

    assert assistant.toggle_voice_output() is False
    assert speech.stops == 1
    assert assistant.status()["voice_output_enabled"] is False

    assert assistant.toggle_voice_output() is True
    assert speech.stops == 1


def test_reset_clears_everything():
    assistant, speech, _ = _assistant([[NetworkError(code="NETWORK_ERROR", message="down")]])
    assistant.ask("hi")
    assistant.reset()
    assert assistant.history == []
    assert assistant.status()["error"] is None
    assert speech.stops == 1
