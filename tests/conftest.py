# tests/conftest.py
from typing import Callable, List

import httpx
import pytest

from corsproxy.core.config import Settings
from corsproxy.main import create_app
from corsproxy.models.schemas import AccessLists
from corsproxy.services.upstream import UpstreamClient


@pytest.fixture
def anyio_backend():
    return "asyncio"


def streamed(status_code: int, body: bytes = b"", headers=None) -> httpx.Response:
    """A response whose body is still unread, as a network transport returns it."""
    return httpx.Response(status_code, headers=headers, stream=httpx.ByteStream(body))


class _Upstream:
    """Records requests and answers them with a canned httpx.Response."""
    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.reply: Callable[[httpx.Request], httpx.Response] = lambda r: streamed(200, b"ok")

    def respond(self, status_code: int, body: bytes = b"", headers=None) -> None:
        self.reply = lambda r: streamed(status_code, body, headers)

    def echo_body(self, status_code: int = 200) -> None:
        self.reply = lambda r: streamed(status_code, r.content)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        return self.reply(request)


@pytest.fixture
def upstream():
    return _Upstream()


@pytest.fixture
def make_client(upstream):
    """Return a factory producing an httpx client bound to a proxy app via ASGI."""
    def _make(access: AccessLists = AccessLists(), **overrides) -> httpx.AsyncClient:
        app = create_app(Settings(access=access, **overrides))
        mock = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
        app.state.upstream = UpstreamClient(mock)
        transport = httpx.ASGITransport(app=app)
        return httpx.AsyncClient(transport=transport, base_url="http://proxy.local")
    return _make
