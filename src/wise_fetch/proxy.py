"""
Proxy option resolution from an environment snapshot.

Decides when the npm-style ``npm_config_*`` variables stand in for the
standard ``https_proxy``/``http_proxy``/``proxy``/``no_proxy`` variables,
following the precedence:

    1. explicit ``proxy`` / ``no_proxy`` option
    2. standard environment variable (ProxyEnvironment.proxy_for)
    3. ``npm_config_*`` fallback variable
    4. unset
"""
import logging
import os
from typing import Any, Dict, Mapping, Optional

import httpx
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger("wise_fetch.proxy")

PROXY_RELATED_ENVS = ("https_proxy", "http_proxy", "proxy", "no_proxy")


class ProxyEnvironment(BaseModel):
    """Read-only snapshot of the proxy-related environment variables.

    Standard variables are matched case-insensitively and count as present
    even when empty. The npm-style fallbacks are matched exactly and only
    count when non-empty.
    """

    model_config = ConfigDict(frozen=True)

    https_proxy: Optional[str] = None
    http_proxy: Optional[str] = None
    proxy: Optional[str] = None
    no_proxy: Optional[str] = None
    npm_config_https_proxy: Optional[str] = None
    npm_config_proxy: Optional[str] = None
    npm_config_no_proxy: Optional[str] = None

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> "ProxyEnvironment":
        """Snapshot the given environment mapping (os.environ by default)."""
        if environ is None:
            environ = os.environ

        values: Dict[str, Optional[str]] = {}
        for key, value in environ.items():
            lower_key = key.lower()
            if lower_key in PROXY_RELATED_ENVS:
                values[lower_key] = value

        for key in ("npm_config_https_proxy", "npm_config_proxy", "npm_config_no_proxy"):
            values[key] = environ.get(key) or None

        return cls(**values)

    def has(self, name: str) -> bool:
        return getattr(self, name) is not None

    def proxy_for(self, scheme: str) -> Optional[str]:
        """Standard-variable proxy for a target scheme, as the engine applies it."""
        if scheme == "https":
            return self.https_proxy or None
        return self.https_proxy or self.http_proxy or self.proxy or None


def resolve_proxy(
    options: Mapping[str, Any],
    url: httpx.URL,
    environment: ProxyEnvironment,
) -> Dict[str, str]:
    """
    Compute the proxy options to add to the merged options.

    Args:
        options: Merged options of the call
        url: Resolved request URL
        environment: Environment snapshot taken for this call

    Returns:
        Dict with ``proxy`` and/or ``no_proxy`` to add; empty when nothing applies.
    """
    additions: Dict[str, str] = {}

    if (
        options.get("no_proxy") is None
        and not environment.has("no_proxy")
        and environment.npm_config_no_proxy
    ):
        additions["no_proxy"] = environment.npm_config_no_proxy

    if options.get("proxy") is None:
        if url.scheme == "https":
            if not environment.has("https_proxy") and environment.npm_config_https_proxy:
                additions["proxy"] = environment.npm_config_https_proxy
        elif (
            not environment.has("https_proxy")
            and not environment.has("http_proxy")
            and not environment.has("proxy")
            and environment.npm_config_proxy
        ):
            additions["proxy"] = environment.npm_config_proxy

    logger.debug(f"resolve_proxy: url={url}, additions={additions}")
    return additions
