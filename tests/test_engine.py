"""
Tests for the httpx + hishel engine adapter and engine initialization.
"""
import asyncio
import os
from unittest import mock

import httpx
import pytest

from wise_fetch import engine as engine_module
from wise_fetch.engine import (
    BodySizeExceededError,
    EngineCell,
    HttpxEngine,
    RedirectNotAllowedError,
    _bypasses_proxy,
    _parse_version,
    ensure_engine_version,
    load_default_engine,
)
from wise_fetch.errors import UnsatisfiedVersionError
from wise_fetch.factory import WiseFetch
from wise_fetch.headers import HeaderSet


def _redirecting(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/old":
        return httpx.Response(302, headers={"location": "https://example.org/new"})
    if request.url.path == "/loop":
        return httpx.Response(302, headers={"location": "https://example.org/loop"})
    return httpx.Response(200, text="moved here")


@pytest.fixture
def make_engine(tmp_path, mock_transport_factory):
    """Build an HttpxEngine over a MockTransport with its cache under tmp_path."""

    def build(handler):
        factory = mock_transport_factory(handler)
        engine = HttpxEngine(cache_dir=str(tmp_path / "cache"), transport_factory=factory)
        engine.factory = factory
        return engine

    return build


class TestHttpxEngineRequests:
    """Tests for translating options into httpx requests."""

    @pytest.mark.asyncio
    async def test_get(self, make_engine, clean_env):
        engine = make_engine(lambda request: httpx.Response(200, text="Hi"))

        response = await engine.dispatch("https://example.org/a", {"headers": HeaderSet({"X-A": "1"})})

        assert response.status_code == 200
        assert response.text == "Hi"
        [sent] = engine.factory.requests
        assert sent.method == "GET"
        assert sent.headers["x-a"] == "1"
        await engine.aclose()

    def test_creates_cache_dir(self, tmp_path, mock_transport_factory):
        cache_dir = tmp_path / "nested" / "cache"
        HttpxEngine(cache_dir=str(cache_dir), transport_factory=mock_transport_factory(None))
        assert cache_dir.is_dir()

    @pytest.mark.asyncio
    async def test_method_and_body(self, make_engine, clean_env):
        engine = make_engine(lambda request: httpx.Response(201))

        await engine.dispatch("https://example.org/items", {"method": "post", "body": b"payload"})

        [sent] = engine.factory.requests
        assert sent.method == "POST"
        assert sent.content == b"payload"
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_timeout_in_milliseconds(self, make_engine, clean_env):
        engine = make_engine(lambda request: httpx.Response(200))

        await engine.dispatch("https://example.org/t1", {"timeout": 1500})
        await engine.dispatch("https://example.org/t2", {"timeout": 0})

        first, second = engine.factory.requests
        assert first.extensions["timeout"]["read"] == 1.5
        assert second.extensions["timeout"]["read"] is None
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_compress_false(self, make_engine, clean_env):
        engine = make_engine(lambda request: httpx.Response(200))

        await engine.dispatch("https://example.org/c", {"compress": False})

        assert engine.factory.requests[0].headers["accept-encoding"] == "identity"
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_cache_mode_header(self, make_engine, clean_env):
        engine = make_engine(lambda request: httpx.Response(200))

        await engine.dispatch("https://example.org/nc", {"cache": "no-cache"})

        assert engine.factory.requests[0].headers["cache-control"] == "no-cache"
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_cached_response(self, make_engine, clean_env):
        """Should answer the second request from the disk cache"""
        engine = make_engine(
            lambda request: httpx.Response(200, text="cached", headers={"cache-control": "max-age=3600"})
        )

        await engine.dispatch("https://example.org/cacheable", {})
        response = await engine.dispatch("https://example.org/cacheable", {})

        assert response.text == "cached"
        assert len(engine.factory.requests) == 1
        assert response.extensions["from_cache"] is True
        await engine.aclose()


class TestHttpxEngineRedirects:
    """Tests for the redirect, follow and size options."""

    @pytest.mark.asyncio
    async def test_follow(self, make_engine, clean_env):
        engine = make_engine(_redirecting)

        response = await engine.dispatch("https://example.org/old", {})

        assert str(response.url) == "https://example.org/new"
        assert response.text == "moved here"
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_manual(self, make_engine, clean_env):
        engine = make_engine(_redirecting)

        response = await engine.dispatch("https://example.org/old", {"redirect": "manual"})

        assert response.status_code == 302
        assert str(response.url) == "https://example.org/old"
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_error(self, make_engine, clean_env):
        engine = make_engine(_redirecting)

        with pytest.raises(RedirectNotAllowedError):
            await engine.dispatch("https://example.org/old", {"redirect": "error"})
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_follow_limit(self, make_engine, clean_env):
        engine = make_engine(_redirecting)

        with pytest.raises(httpx.TooManyRedirects):
            await engine.dispatch("https://example.org/loop", {"follow": 2})
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_size_limit(self, make_engine, clean_env):
        engine = make_engine(lambda request: httpx.Response(200, content=b"0123456789"))

        with pytest.raises(BodySizeExceededError):
            await engine.dispatch("https://example.org/big", {"size": 5})

        response = await engine.dispatch("https://example.org/small", {"size": 10})
        assert response.content == b"0123456789"
        await engine.aclose()


class TestHttpxEngineClients:
    """Tests for client pooling and proxy selection."""

    @pytest.mark.asyncio
    async def test_clients_are_pooled(self, make_engine, clean_env):
        engine = make_engine(lambda request: httpx.Response(200))

        await engine.dispatch("https://example.org/p1", {})
        await engine.dispatch("https://example.org/p2", {})
        await engine.dispatch("https://example.org/p3", {"max_sockets": 4})

        assert len(engine._clients) == 2
        await engine.aclose()
        assert engine._clients == {}

    @pytest.mark.asyncio
    async def test_explicit_proxy(self, make_engine, clean_env):
        engine = make_engine(lambda request: httpx.Response(200))

        await engine.dispatch("https://example.org/", {"proxy": "http://proxy:8080"})

        assert engine.factory.proxies == ["http://proxy:8080"]
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_environment_proxy(self, make_engine, clean_env):
        engine = make_engine(lambda request: httpx.Response(200))

        with mock.patch.dict(os.environ, {"http_proxy": "http://plain:8080"}):
            await engine.dispatch("https://example.org/", {})
            await engine.dispatch("http://example.org/", {})

        with mock.patch.dict(os.environ, {"HTTPS_PROXY": "http://secure:8080", "http_proxy": "http://plain:8080"}):
            await engine.dispatch("http://example.org/", {})

        assert engine.factory.proxies == [None, "http://plain:8080", "http://secure:8080"]
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_https_proxy_applies_to_http_targets(self, make_engine, clean_env):
        """Should use https_proxy for an http target instead of the npm fallback"""
        engine = make_engine(lambda request: httpx.Response(200))
        environ = {"https_proxy": "http://secure-proxy:3128", "npm_config_proxy": "http://npm-proxy:3128"}
        request = WiseFetch().build_request("http://example.org/", environ=environ)

        await engine.dispatch(request.href, request.options)

        assert engine.factory.proxies == ["http://secure-proxy:3128"]
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_uses_request_environment_snapshot(self, make_engine, clean_env):
        """Should apply the proxy chosen from the injected environment, not os.environ"""
        engine = make_engine(lambda request: httpx.Response(200))
        first = WiseFetch().build_request("https://example.org/", environ={"HTTPS_PROXY": "http://snapshot:8080"})
        second = WiseFetch().build_request("https://example.org/", environ={})

        with mock.patch.dict(os.environ, {"HTTPS_PROXY": "http://live:8080"}):
            await engine.dispatch(first.href, first.options)
            await engine.dispatch(second.href, second.options)

        assert engine.factory.proxies == ["http://snapshot:8080", None]
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_no_proxy_from_snapshot(self, make_engine, clean_env):
        engine = make_engine(lambda request: httpx.Response(200))
        environ = {"https_proxy": "http://proxy:8080", "no_proxy": "example.org"}
        request = WiseFetch().build_request("https://example.org/", environ=environ)

        await engine.dispatch(request.href, request.options)

        assert engine.factory.proxies == [None]
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_no_proxy_bypass(self, make_engine, clean_env):
        engine = make_engine(lambda request: httpx.Response(200))

        await engine.dispatch("https://api.internal/", {"proxy": "http://proxy:8080", "no_proxy": ".internal"})

        assert engine.factory.proxies == [None]
        await engine.aclose()


class TestBypassesProxy:
    """Tests for _bypasses_proxy."""

    def test_matches(self):
        assert _bypasses_proxy("example.org", "example.org")
        assert _bypasses_proxy("api.example.org", "localhost, .example.org")
        assert _bypasses_proxy("anything", "*")

    def test_does_not_match(self):
        assert not _bypasses_proxy("example.org", None)
        assert not _bypasses_proxy("example.org", "")
        assert not _bypasses_proxy("badexample.org", "example.org")


class TestVersionGate:
    """Tests for the httpx version gate."""

    def test_parse_version(self):
        assert _parse_version("0.28.1") == (0, 28, 1)
        assert _parse_version("1.0.0rc1") == (1, 0, 0)
        assert _parse_version("0.26.0") < _parse_version("0.27")

    @pytest.mark.asyncio
    async def test_satisfied(self):
        installed = await ensure_engine_version("0.0.1")
        assert installed == httpx.__version__

    @pytest.mark.asyncio
    async def test_unsatisfied(self):
        with pytest.raises(UnsatisfiedVersionError) as exc_info:
            await ensure_engine_version("999.0.0")

        assert exc_info.value.code == "ERR_UNSATISFIED_VERSION"
        assert "requires httpx 999.0.0 or later" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_load_default_engine_fails_on_old_httpx(self, monkeypatch, tmp_path):
        monkeypatch.setattr(engine_module, "HttpxEngine", lambda: HttpxEngine(cache_dir=str(tmp_path)))

        async def gate():
            return await ensure_engine_version("999.0.0")

        monkeypatch.setattr(engine_module, "ensure_engine_version", gate)

        with pytest.raises(UnsatisfiedVersionError):
            await load_default_engine()

    @pytest.mark.asyncio
    async def test_load_default_engine(self, monkeypatch, tmp_path):
        monkeypatch.setattr(engine_module, "HttpxEngine", lambda: HttpxEngine(cache_dir=str(tmp_path)))

        engine = await load_default_engine()

        assert isinstance(engine, HttpxEngine)


class TestEngineCell:
    """Tests for the compute-once engine cell."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_initialization(self):
        calls = []
        engine = object()

        async def loader():
            calls.append(1)
            await asyncio.sleep(0.01)
            return engine

        cell = EngineCell(loader=loader)
        results = await asyncio.gather(cell.get(), cell.get(), cell.get())

        assert results == [engine, engine, engine]
        assert calls == [1]
        assert cell.engine is engine

    @pytest.mark.asyncio
    async def test_resolved_engine_is_reused(self):
        calls = []

        async def loader():
            calls.append(1)
            return object()

        cell = EngineCell(loader=loader)
        first = await cell.get()
        second = await cell.get()

        assert first is second
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_failure_is_not_memoized(self):
        """Should retry initialization after a failure"""
        attempts = []
        engine = object()

        async def loader():
            attempts.append(1)
            if len(attempts) == 1:
                raise UnsatisfiedVersionError("too old")
            return engine

        cell = EngineCell(loader=loader)

        with pytest.raises(UnsatisfiedVersionError):
            await cell.get()
        assert cell.engine is None

        assert await cell.get() is engine
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_failure(self):
        attempts = []

        async def loader():
            attempts.append(1)
            await asyncio.sleep(0.01)
            raise RuntimeError("boom")

        cell = EngineCell(loader=loader)
        results = await asyncio.gather(cell.get(), cell.get(), return_exceptions=True)

        assert all(isinstance(result, RuntimeError) for result in results)
        assert len(attempts) == 1
