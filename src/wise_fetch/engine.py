"""
Fetch engine adapter and its one-shot lazy initialization.

The engine is the external collaborator doing the actual network I/O:
httpx for HTTP, TLS, pooling and proxies, wrapped in hishel's cache
transport for RFC 7234 caching on disk under CACHE_DIR. This module only
translates the wise_fetch option grammar into httpx/hishel arguments.
"""
import asyncio
import importlib.metadata
import logging
import math
import re
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

import hishel
import httpx

from .config import get_settings
from .constants import CACHE_DIR, MINIMUM_REQUIRED_HTTPX_VERSION
from .errors import UnsatisfiedVersionError
from .proxy import ProxyEnvironment
from .types import FetchEngine

logger = logging.getLogger("wise_fetch.engine")

TransportFactory = Callable[[Optional[str], httpx.Limits], httpx.AsyncBaseTransport]

_LEADING_DIGITS = re.compile(r"\d+")

_CACHE_MODE_HEADERS = {
    "no-cache": "no-cache",
    "only-if-cached": "only-if-cached",
}
_CACHE_MODE_EXTENSIONS = {
    "force-cache": {"force_cache": True},
    "no-store": {"cache_disabled": True},
}


class RedirectNotAllowedError(httpx.RequestError):
    """A redirect response was received while the redirect option is 'error'."""


class BodySizeExceededError(httpx.RequestError):
    """The response body is larger than the size option allows."""


def _default_transport(proxy: Optional[str], limits: httpx.Limits) -> httpx.AsyncBaseTransport:
    return httpx.AsyncHTTPTransport(
        proxy=proxy,
        limits=limits,
        verify=get_settings().ssl_cert_verify,
    )


def _bypasses_proxy(host: str, no_proxy: Optional[str]) -> bool:
    """Check a host against a comma-separated no_proxy list."""
    if not no_proxy:
        return False
    for entry in no_proxy.split(","):
        entry = entry.strip().lower()
        if not entry:
            continue
        if entry == "*":
            return True
        entry = entry.lstrip(".")
        if host == entry or host.endswith(f".{entry}"):
            return True
    return False


class HttpxEngine:
    """
    Default fetch engine: httpx.AsyncClient over a hishel disk cache.

    Clients are pooled per (proxy, max_sockets, follow) so connection pools
    survive across calls. Close them with aclose().
    """

    def __init__(
        self,
        cache_dir: str = CACHE_DIR,
        transport_factory: Optional[TransportFactory] = None,
    ):
        self._cache_dir = Path(cache_dir)
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        self._transport_factory = transport_factory or _default_transport
        self._clients: Dict[Tuple[Optional[str], float, int], httpx.AsyncClient] = {}

    def _select_proxy(self, url: httpx.URL, options: Mapping[str, Any]) -> Optional[str]:
        if "proxy" in options and "no_proxy" in options:
            proxy, no_proxy = options["proxy"], options["no_proxy"]
        else:
            environment = ProxyEnvironment.from_environ()
            proxy = options.get("proxy") or environment.proxy_for(url.scheme)
            no_proxy = options.get("no_proxy") or environment.no_proxy
        if proxy and _bypasses_proxy(url.host, no_proxy):
            logger.debug(f"HttpxEngine._select_proxy: {url.host} bypasses proxy via no_proxy={no_proxy!r}")
            return None
        return proxy or None

    def _client_for(self, proxy: Optional[str], max_sockets: float, follow: int) -> httpx.AsyncClient:
        key = (proxy, max_sockets, follow)
        client = self._clients.get(key)
        if client is not None:
            return client

        limits = httpx.Limits(max_connections=None if max_sockets == math.inf else int(max_sockets))
        transport = hishel.AsyncCacheTransport(
            transport=self._transport_factory(proxy, limits),
            storage=hishel.AsyncFileStorage(base_path=self._cache_dir),
            controller=hishel.Controller(cacheable_methods=["GET", "HEAD"]),
        )
        client = httpx.AsyncClient(transport=transport, max_redirects=follow, trust_env=False)
        self._clients[key] = client
        logger.debug(f"HttpxEngine._client_for: created client proxy={proxy!r}, max_sockets={max_sockets}, follow={follow}")
        return client

    def _build_request(self, client: httpx.AsyncClient, url: str, options: Mapping[str, Any]) -> httpx.Request:
        headers = dict(options.get("headers") or {})

        cache_mode = options.get("cache") or "default"
        if cache_mode in _CACHE_MODE_HEADERS and "cache-control" not in headers:
            headers["cache-control"] = _CACHE_MODE_HEADERS[cache_mode]
        if options.get("compress") is False and "accept-encoding" not in headers:
            headers["accept-encoding"] = "identity"

        timeout = options.get("timeout") or 0
        return client.build_request(
            options.get("method") or "GET",
            url,
            headers=headers,
            content=options.get("body"),
            timeout=timeout / 1000 if timeout else None,
            extensions=dict(_CACHE_MODE_EXTENSIONS.get(cache_mode, {})),
        )

    async def dispatch(self, url: str, options: Mapping[str, Any]) -> httpx.Response:
        """Send a request described by wise_fetch options and read its body."""
        parsed = httpx.URL(url)
        redirect = options.get("redirect") or "follow"
        follow = options.get("follow")
        if follow is None:
            follow = get_settings().default_follow
        max_sockets = options.get("max_sockets") or math.inf

        client = self._client_for(self._select_proxy(parsed, options), max_sockets, int(follow))
        request = self._build_request(client, url, options)

        logger.debug(f"HttpxEngine.dispatch: {request.method} {url} redirect={redirect}")
        response = await client.send(request, follow_redirects=redirect == "follow", stream=True)

        if redirect == "error" and response.is_redirect:
            await response.aclose()
            raise RedirectNotAllowedError(
                f"redirect mode is set to error: {url} responded with a redirect to "
                f"{response.headers.get('location')}",
                request=request,
            )

        try:
            await response.aread()
        finally:
            await response.aclose()

        size = options.get("size") or 0
        if size and len(response.content) > size:
            raise BodySizeExceededError(
                f"content size at {url} over limit: {size}",
                request=request,
            )

        return response

    async def aclose(self) -> None:
        clients, self._clients = list(self._clients.values()), {}
        for client in clients:
            await client.aclose()


def _parse_version(version: str) -> Tuple[int, ...]:
    parts = []
    for part in version.split("."):
        match = _LEADING_DIGITS.match(part)
        if match is None:
            break
        parts.append(int(match.group()))
        if match.end() != len(part):
            break
    return tuple(parts)


async def ensure_engine_version(minimum: str = MINIMUM_REQUIRED_HTTPX_VERSION) -> str:
    """Check the installed httpx distribution against the minimum supported version."""
    installed = importlib.metadata.version("httpx")
    if _parse_version(installed) < _parse_version(minimum):
        raise UnsatisfiedVersionError(
            f"wise_fetch requires httpx {minimum} or later, but httpx {installed} is installed."
        )
    return installed


async def load_default_engine() -> FetchEngine:
    """Build the default engine and run the version gate concurrently."""
    engine, installed = await asyncio.gather(
        asyncio.to_thread(HttpxEngine),
        ensure_engine_version(),
    )
    logger.debug(f"load_default_engine: httpx {installed}, cache_dir={CACHE_DIR}")
    return engine


class EngineCell:
    """
    Compute-once cell for the engine.

    Concurrent first callers share a single in-flight initialization. The
    resolved engine is stored once; a failed initialization is not kept, so
    the next call retries.
    """

    def __init__(self, loader: Callable[[], Awaitable[FetchEngine]] = load_default_engine):
        self._loader = loader
        self._engine: Optional[FetchEngine] = None
        self._pending: Optional[asyncio.Future] = None

    @property
    def engine(self) -> Optional[FetchEngine]:
        return self._engine

    async def get(self) -> FetchEngine:
        if self._engine is not None:
            return self._engine

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._loader())

        pending = self._pending
        try:
            engine = await asyncio.shield(pending)
        except BaseException:
            if self._pending is pending and pending.done():
                self._pending = None
            raise

        self._engine = engine
        self._pending = None
        return engine


_ENGINE_CELL = EngineCell()


async def get_engine() -> FetchEngine:
    """Return the process-wide engine, initializing it on first use."""
    return await _ENGINE_CELL.get()
