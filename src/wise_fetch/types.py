"""
Type definitions for wise_fetch.
"""
from dataclasses import dataclass
from typing import Any, AsyncIterator, Mapping, Protocol, runtime_checkable

import httpx

Options = Mapping[str, Any]


@runtime_checkable
class ResponseLike(Protocol):
    """Response returned by the fetch engine (httpx.Response satisfies it)."""

    status_code: int
    reason_phrase: str
    url: Any
    headers: Any
    content: bytes
    text: str

    def json(self, **kwargs: Any) -> Any:
        ...

    def aiter_bytes(self, chunk_size: Any = None) -> AsyncIterator[bytes]:
        ...


@runtime_checkable
class FetchEngine(Protocol):
    """External fetch/cache engine."""

    async def dispatch(self, url: str, options: Options) -> ResponseLike:
        """Send the request and return the response."""
        ...


@dataclass(frozen=True)
class ResolvedRequest:
    """Fully merged, validated and normalized request handed to the engine."""

    url: httpx.URL
    options: Options

    @property
    def href(self) -> str:
        return str(self.url)

    @property
    def method(self) -> str:
        method = self.options.get("method")
        return method.upper() if method else "GET"
