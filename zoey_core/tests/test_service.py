import pytest

from zoey_core.api import service
from zoey_core.domain.models import ProviderId, StreamEvent


class FakeEngine:
    def __init__(self, ok=True, raises=None):
        self.ok = ok
        self.raises = raises
        self.active_provider = ProviderId.GROQ if ok else None
        self.last_error = None if ok else "All providers failed. Please check your settings."

    def send_message(self, history, on_event):
        if self.raises is not None:
            raise self.raises
        on_event(StreamEvent.complete())
        return self.ok


class FakeSpeech:
    def __init__(self):
        self.closed = False
        self.spoken = []

    def speak(self, text):
        self.spoken.append(text)

    def stop(self):
        pass

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def reset_singletons():
    service.shutdown()
    yield
    service.shutdown()


def test_send_message_reports_result(monkeypatch):
    monkeypatch.setattr(service, "_engine", FakeEngine(ok=True))
    events = []
    result = service.send_message([{"role": "user", "content": "hi"}], events.append)
    assert result == {"ok": True, "active_provider": "groq", "error": None}
    assert events == [StreamEvent.complete()]


def test_send_message_all_failed(monkeypatch):
    monkeypatch.setattr(service, "_engine", FakeEngine(ok=False))
    result = service.send_message([{"role": "user", "content": "hi"}], lambda e: None)
    assert result["ok"] is False
    assert result["active_provider"] is None
    assert result["error"] == "All providers failed. Please check your settings."


def test_send_message_reraises_unexpected_errors(monkeypatch):
    monkeypatch.setattr(service, "_engine", FakeEngine(raises=ValueError("bad history")))
    with pytest.raises(ValueError):
        service.send_message([{"role": "system", "content": "x"}], lambda e: None)


def test_speak_and_shutdown(monkeypatch):
    speech = FakeSpeech()
    monkeypatch.setattr(service, "_speech", speech)
    service.speak("hello")
    assert speech.spoken == ["hello"]

    service.shutdown()
    assert speech.closed
    assert service._speech is None


def test_default_assistant_shares_engine_and_speech(monkeypatch):
    engine = FakeEngine()
    speech = FakeSpeech()
    monkeypatch.setattr(service, "_engine", engine)
    monkeypatch.setattr(service, "_speech", speech)
    assistant = service.get_default_assistant()
    assert assistant.engine is engine
    assert assistant.speech is speech
    assert service.get_default_assistant() is assistant
