"""
wise_fetch - Validating, option-merging front end over an httpx fetch engine.

Every response is cached on disk under CACHE_DIR, proxies are picked up
from the environment (including npm-style ``npm_config_*`` fallbacks), and
every invalid option is reported at once.

Example - One-off request:
    >>> import wise_fetch
    >>>
    >>> response = await wise_fetch.request("https://example.org")
    >>> response.text

Example - Instance with base options:
    >>> api = wise_fetch.create({
    ...     "base_url": "https://api.example.org/v1/",
    ...     "headers": {"accept": "application/json"},
    ...     "frozen_options": {"base_url"},
    ... })
    >>> response = await api("users", {"timeout": 5000})
    >>>
    >>> # Chained instances inherit the parent's options
    >>> posting = api.create({"method": "post"})

Environment Variables:
    WISE_FETCH_DEBUG: Enable debug logging (disabled by default)
    WISE_FETCH_SSL_CERT_VERIFY: Verify TLS certificates (enabled by default)
    HTTPS_PROXY / HTTP_PROXY / PROXY / NO_PROXY: Proxy settings
    npm_config_https_proxy / npm_config_proxy / npm_config_no_proxy: Proxy fallbacks
"""
import logging

from .config import get_settings

__version__ = "1.0.0"


def _configure_logging() -> None:
    """Configure package logging based on WISE_FETCH_DEBUG."""
    package_logger = logging.getLogger("wise_fetch")

    if get_settings().debug:
        package_logger.setLevel(logging.DEBUG)

        # Avoid duplicate handlers on re-import
        if not package_logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
            package_logger.addHandler(handler)
    else:
        package_logger.setLevel(logging.WARNING)


# Configure logging on import
_configure_logging()

# Constants
from .constants import CACHE_DIR, MINIMUM_REQUIRED_HTTPX_VERSION

# Errors
from .errors import (
    AbortError,
    AggregateOptionError,
    ArgumentRangeError,
    ArgumentTypeError,
    Diagnostic,
    DiagnosticKind,
    HTTPResponseError,
    InvalidURLError,
    OptionError,
    UnconfigurableOptionError,
    UnsatisfiedVersionError,
    URIFormatError,
    WiseFetchError,
)

# Building blocks
from .cancellation import AbortController, AbortSignal
from .headers import HeaderSet
from .validator import validate_options
from .engine import BodySizeExceededError, EngineCell, HttpxEngine, RedirectNotAllowedError

# API
from .factory import InstanceConfig, WiseFetch, create, request

__all__ = [
    # Version
    "__version__",
    # Constants
    "CACHE_DIR",
    "MINIMUM_REQUIRED_HTTPX_VERSION",
    # Errors
    "WiseFetchError",
    "ArgumentTypeError",
    "ArgumentRangeError",
    "URIFormatError",
    "InvalidURLError",
    "OptionError",
    "UnconfigurableOptionError",
    "AggregateOptionError",
    "HTTPResponseError",
    "AbortError",
    "UnsatisfiedVersionError",
    "Diagnostic",
    "DiagnosticKind",
    # Building blocks
    "AbortController",
    "AbortSignal",
    "HeaderSet",
    "validate_options",
    "HttpxEngine",
    "EngineCell",
    "RedirectNotAllowedError",
    "BodySizeExceededError",
    # API
    "WiseFetch",
    "InstanceConfig",
    "request",
    "create",
]
