"""
Request URL validation and resolution against an optional base URL.
"""
import logging
import re
from typing import Any, Optional, Union
from urllib.parse import unquote_to_bytes

import httpx

from .constants import URL_ERROR
from .errors import (
    ArgumentRangeError,
    ArgumentTypeError,
    InvalidURLError,
    URIFormatError,
    WiseFetchError,
)
from .inspection import inspect_value, inspect_with_kind

logger = logging.getLogger("wise_fetch.url")

URLTypes = Union[str, httpx.URL]

_MALFORMED_PERCENT_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_HTTP_SCHEMES = ("http", "https")


def is_rfc3986_compatible(url: str) -> bool:
    """Check that every percent escape is well-formed and decodes to UTF-8."""
    if _MALFORMED_PERCENT_ESCAPE.search(url):
        return False
    try:
        unquote_to_bytes(url).decode("utf-8")
    except UnicodeError:
        return False
    return True


def _parse(url: URLTypes, base_url: Optional[URLTypes]) -> httpx.URL:
    if isinstance(url, str):
        url = url.strip()
    parsed = httpx.URL(url)
    if base_url is not None:
        parsed = httpx.URL(base_url).join(parsed)
    return parsed


def get_url_validation_error(
    message: str,
    url: Any,
    base_url: Optional[URLTypes] = None,
) -> Optional[WiseFetchError]:
    """
    Validate a request URL, returning the error instead of raising it.

    Malformed percent-encoding is the exception to that rule: it is raised
    immediately as a URIFormatError with the ERR_INVALID_URI code.

    Args:
        message: Leading sentence of every error message
        url: The URL to validate
        base_url: Optional base the URL is resolved against

    Returns:
        The validation error, or None when the URL is usable.
    """
    if not isinstance(url, (str, httpx.URL)):
        return ArgumentTypeError(f"{message}, but got {inspect_with_kind(url)}.")

    if not base_url and isinstance(url, str):
        if url == "":
            return ArgumentRangeError(f"{message}, but got '' (empty string).")
        if url.strip() == "":
            return URIFormatError(f"{message}, but got a whitespace-only string {inspect_value(url)}.")

    if not is_rfc3986_compatible(str(url)):
        raise URIFormatError(
            f"{message}, but received an RFC 3986 incompatible URI {inspect_value(str(url))}. "
            f"In short, RFC 3986 says that a URI must be a UTF-8 sequence. https://tools.ietf.org/html/rfc3986",
            code="ERR_INVALID_URI",
        )

    invalid = InvalidURLError(f"{message}, but got an invalid URL {inspect_value(str(url))}.")
    try:
        parsed = _parse(url, base_url or None)
    except httpx.InvalidURL as exc:
        invalid.__cause__ = exc
        return invalid

    if parsed.scheme and parsed.scheme not in _HTTP_SCHEMES:
        return ArgumentRangeError(
            f"{message}, but got an non-HTTP(S) URL {inspect_value(str(parsed))}.",
            code="ERR_INVALID_URL_SCHEME",
        )

    if not parsed.is_absolute_url or not parsed.host:
        return invalid

    return None


def resolve_url(url: Any, base_url: Optional[URLTypes] = None, message: str = URL_ERROR) -> httpx.URL:
    """Validate a URL and resolve it against base_url, raising on failure."""
    error = get_url_validation_error(message, url, base_url)
    if error is not None:
        raise error

    resolved = _parse(url, base_url or None)
    logger.debug(f"resolve_url: url={str(url)!r}, base_url={base_url!s}, resolved={resolved}")
    return resolved
