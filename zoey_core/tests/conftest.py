import json as jsonlib

import httpx
import pytest


class FakeStreamResponse:
    """模拟 httpx 的流式响应：iter_text() 逐块产出预置文本。"""

    def __init__(self, chunks=(), status_code=200, body=""):
        self.status_code = status_code
        self._chunks = list(chunks)
        self.text = body

    def read(self):
        return self.text.encode("utf-8")

    def iter_text(self):
        for chunk in self._chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk


class FakeResponse:
    """模拟 httpx 的普通响应（用于 post）。"""

    def __init__(self, status_code=200, content=b"", payload=None, headers=None):
        self.status_code = status_code
        self.content = content
        self._payload = payload
        self.headers = headers or {}

    def json(self):
        if self._payload is None:
            raise jsonlib.JSONDecodeError("no json", "", 0)
        return self._payload


class StreamContext:
    def __init__(self, response):
        self._response = response

    def __enter__(self):
        return self._response

    def __exit__(self, *args):
        return False


class FakeHttp:
    """按 URL 片段路由到预置响应，并记录所有请求。"""

    def __init__(self):
        self.routes = []
        self.requests = []

    def add(self, url_part, response):
        self.routes.append((url_part, response))

    def _route(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        for part, response in self.routes:
            if part in url:
                if isinstance(response, Exception):
                    raise response
                return response
        raise httpx.ConnectError(f"no route for {url}")

    def client_class(self):
        http = self

        class Client:
            def __init__(self, *a, **kw):
                pass

            def __enter__(self):
                return self

            def __exit__(self, *a):
                return False

            def stream(self, method, url, json=None, headers=None, params=None):
                return StreamContext(http._route(method, url, json=json, headers=headers, params=params))

            def post(self, url, json=None, headers=None, params=None):
                return http._route("POST", url, json=json, headers=headers, params=params)

        return Client


@pytest.fixture
def fake_http(monkeypatch):
    http = FakeHttp()
    monkeypatch.setattr("httpx.Client", http.client_class())
    return http
