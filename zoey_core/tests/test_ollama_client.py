import httpx
import pytest

from zoey_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from zoey_core.domain.models import ConversationMessage
from zoey_core.providers.ollama_client import OllamaClient
from zoey_core.providers.registry import ProviderConfig

from conftest import FakeStreamResponse


CONFIG = ProviderConfig(
    name="ollama",
    base_url="http://localhost:11434",
    model="llama2",
    requires_api_key=False,
)
HISTORY = [
    ConversationMessage(role="user", content="hi"),
    ConversationMessage(role="assistant", content="hello"),
    ConversationMessage(role="user", content="how are you?"),
]


def test_ollama_stream_payload_and_tokens(fake_http):
    fake_http.add(
        "/api/chat",
        FakeStreamResponse(
            [
                '{"message": {"role": "assistant", "content": "I am"}, "done": false}\n{"mess',
                'age": {"role": "assistant", "content": " fine"}, "done": false}\n',
                '{"message": {"role": "assistant", "content": ""}, "done": true}\n',
                '{"message": {"role": "assistant", "content": "ignored"}, "done": false}\n',
            ]
        ),
    )
    client = OllamaClient(CONFIG, timeout=1.0)
    assert list(client.chat_stream(HISTORY)) == ["I am", " fine"]

    req = fake_http.requests[0]
    assert req["url"] == "http://localhost:11434/api/chat"
    assert req["json"]["model"] == "llama2"
    assert req["json"]["stream"] is True
    assert [m["role"] for m in req["json"]["messages"]] == ["user", "assistant", "user"]
    assert req["json"]["messages"][2]["content"] == "how are you?"


def test_ollama_skips_malformed_lines(fake_http):
    fake_http.add(
        "/api/chat",
        FakeStreamResponse(['{"message": {"content": "a"}}\n{oops}\n{"message": {"content": "b"}}\n']),
    )
    client = OllamaClient(CONFIG, timeout=1.0)
    assert list(client.chat_stream(HISTORY)) == ["a", "b"]


@pytest.mark.parametrize(
    "response, error_cls",
    [
        (FakeStreamResponse(status_code=500, body="boom"), ApiError),
        (FakeStreamResponse(status_code=429, body="slow down"), RateLimitError),
        (httpx.ConnectError("refused"), NetworkError),
        (FakeStreamResponse([]), NetworkError),
        (FakeStreamResponse(['{"error": "model \\"x\\" not found"}\n']), ApiError),
    ],
)
def test_ollama_failures(fake_http, response, error_cls):
    fake_http.add("/api/chat", response)
    client = OllamaClient(CONFIG, timeout=1.0)
    with pytest.raises(error_cls):
        list(client.chat_stream(HISTORY))


def test_ollama_api_error_keeps_status_and_body(fake_http):
    fake_http.add("/api/chat", FakeStreamResponse(status_code=404, body="model not found"))
    client = OllamaClient(CONFIG, timeout=1.0)
    with pytest.raises(ApiError) as excinfo:
        list(client.chat_stream(HISTORY))
    assert excinfo.value.http_status == 404
    assert excinfo.value.message == "model not found"


def test_ollama_transport_drop_mid_stream(fake_http):
    fake_http.add(
        "/api/chat",
        FakeStreamResponse(['{"message": {"content": "part"}}\n', httpx.ReadError("reset")]),
    )
    client = OllamaClient(CONFIG, timeout=1.0)
    received = []
    with pytest.raises(NetworkError):
        for text in client.chat_stream(HISTORY):
            received.append(text)
    assert received == ["part"]


def test_ollama_invalid_url_is_rejected_as_invalid_request(fake_http):
    fake_http.add("/api/chat", httpx.InvalidURL("Invalid port: 'abc'"))
    client = OllamaClient(CONFIG, timeout=1.0)
    with pytest.raises(ValidationError) as excinfo:
        list(client.chat_stream(HISTORY))
    assert excinfo.value.code == "INVALID_REQUEST"


def test_ollama_wrong_shape_frame_dropped(fake_http):
    fake_http.add(
        "/api/chat",
        FakeStreamResponse(['{"message": {"content": "a"}}\n{"message": ["x"]}\n{"message": {"content": "b"}}\n']),
    )
    client = OllamaClient(CONFIG, timeout=1.0)
    assert list(client.chat_stream(HISTORY)) == ["a", "b"]
