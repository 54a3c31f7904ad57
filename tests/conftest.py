"""
Shared fixtures for wise_fetch tests.
"""
import os
from typing import Any, Callable, List, Mapping, Optional, Tuple
from unittest import mock

import httpx
import pytest

from wise_fetch import engine as engine_module
from wise_fetch.engine import EngineCell


class FakeEngine:
    """Engine double recording every dispatch and answering with a canned response."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Mapping[str, Any]]] = []
        self.status_code = 200
        self.content = b""
        self.final_url: Optional[str] = None
        self.handler: Optional[Callable[[str, Mapping[str, Any]], Any]] = None

    def respond(self, status_code: int = 200, content: bytes = b"", final_url: Optional[str] = None) -> None:
        self.status_code = status_code
        self.content = content
        self.final_url = final_url

    async def dispatch(self, url: str, options: Mapping[str, Any]) -> httpx.Response:
        self.calls.append((url, options))
        if self.handler is not None:
            return await self.handler(url, options)

        method = (options.get("method") or "GET").upper()
        return httpx.Response(
            self.status_code,
            content=self.content,
            request=httpx.Request(method, self.final_url or url),
        )

    @property
    def last_url(self) -> str:
        return self.calls[-1][0]

    @property
    def last_options(self) -> Mapping[str, Any]:
        return self.calls[-1][1]


@pytest.fixture
def fake_engine(monkeypatch):
    """Install a FakeEngine as the process-wide engine."""
    fake = FakeEngine()

    async def load():
        return fake

    monkeypatch.setattr(engine_module, "_ENGINE_CELL", EngineCell(loader=load))
    return fake


@pytest.fixture
def clean_env():
    with mock.patch.dict(os.environ, {}, clear=True):
        yield


@pytest.fixture
def mock_transport_factory():
    """Transport factory for HttpxEngine answering from a handler."""

    def build(handler):
        requests: List[httpx.Request] = []
        proxies: List[Optional[str]] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        def factory(proxy, limits):
            proxies.append(proxy)
            return httpx.MockTransport(recording_handler)

        factory.requests = requests
        factory.proxies = proxies
        return factory

    return build
