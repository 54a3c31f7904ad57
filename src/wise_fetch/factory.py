"""
Configured fetch instances.

A WiseFetch instance carries a frozen InstanceConfig: the flattened options
accumulated through a create() chain. Calling the instance validates the
per-call options against that config, merges them on top of it and hands
the resolved request to the dispatcher.
"""
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Tuple

from .constants import CREATE_METHOD_SPECIFIC_OPTIONS
from .dispatcher import dispatch
from .errors import ArgumentRangeError
from .headers import HeaderSet, materialize_headers
from .proxy import ProxyEnvironment, resolve_proxy
from .types import ResolvedRequest, ResponseLike
from .url import resolve_url
from .validator import validate_options

logger = logging.getLogger("wise_fetch.factory")


def _count_phrase(count: int) -> str:
    return f"{count or 'no'} argument{'' if count == 1 else 's'}"


def _prepare(options: Any) -> Any:
    """Materialize one-shot header iterators without touching the caller's mapping."""
    if isinstance(options, Mapping) and options.get("headers") is not None:
        headers = materialize_headers(options["headers"])
        if headers is not options["headers"]:
            return {**options, "headers": headers}
    return options


def _set_fields(options: Optional[Mapping]) -> Dict[str, Any]:
    return {key: value for key, value in (options or {}).items() if value is not None}


@dataclass(frozen=True)
class InstanceConfig:
    """Flattened base options of a WiseFetch instance."""

    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    frozen_options: FrozenSet[str] = frozenset()
    additional_option_validators: Tuple[Callable[[Mapping], Any], ...] = ()
    url_modifier: Optional[Callable[[Any], Any]] = None

    def derive(self, base_options: Optional[Mapping]) -> "InstanceConfig":
        """
        Validate base_options and shallow-merge them over this config.

        Neither this config nor base_options is modified.
        """
        base_options = _prepare(base_options)
        validate_options(base_options, is_base_options=True)
        base = _set_fields(base_options)

        flattened = {**self.options, **base}
        if "headers" in base:
            flattened["headers"] = HeaderSet.from_value(base["headers"])

        return InstanceConfig(
            options=MappingProxyType(flattened),
            frozen_options=frozenset(flattened.get("frozen_options") or ()),
            additional_option_validators=tuple(flattened.get("additional_option_validators") or ()),
            url_modifier=flattened.get("url_modifier"),
        )


class WiseFetch:
    """
    Callable fetch instance bound to a set of base options.

    Usage:
        fetch = create({"base_url": "https://example.org/api/", "frozen_options": {"method"}})
        response = await fetch("users", {"headers": {"accept": "application/json"}})
    """

    __slots__ = ("_config",)

    def __init__(self, config: Optional[InstanceConfig] = None):
        self._config = config or InstanceConfig()

    @property
    def options(self) -> Mapping[str, Any]:
        """Read-only view of the flattened base options."""
        return self._config.options

    @property
    def config(self) -> InstanceConfig:
        return self._config

    def create(self, *args: Any) -> "WiseFetch":
        """Create a new instance whose base options extend this instance's."""
        if len(args) != 1:
            raise ArgumentRangeError(f"Expected 1 argument (<dict>), but got {_count_phrase(len(args))}.")

        child = WiseFetch(self._config.derive(args[0]))
        logger.debug(f"WiseFetch.create: options={sorted(child.options)}")
        return child

    def build_request(
        self,
        url: Any,
        options: Optional[Mapping] = None,
        *,
        validate: bool = True,
        environ: Optional[Mapping[str, str]] = None,
    ) -> ResolvedRequest:
        """
        Validate, merge and resolve one call into a ResolvedRequest.

        Args:
            url: Request URL, relative to base_url when one is configured
            options: Per-call options
            validate: Validate options against this instance first
            environ: Environment used for proxy fallbacks (os.environ by default)
        """
        options = _prepare(options)
        if validate:
            validate_options(
                options,
                frozen_options=self._config.frozen_options,
                additional_option_validators=self._config.additional_option_validators,
                base_options=self._config.options,
            )
        call = _set_fields(options)

        base = self._config.options
        merged: Dict[str, Any] = {**base, **call}

        headers = HeaderSet(base.get("headers") or {})
        if "headers" in call:
            headers = headers.merged(HeaderSet.from_value(call["headers"]))
        user_agent = call.get("user_agent") or base.get("user_agent")
        if user_agent:
            headers = headers.merged({"user-agent": user_agent})
        merged["headers"] = headers

        if self._config.url_modifier is not None:
            url = self._config.url_modifier(url)
        resolved_url = resolve_url(url, merged.get("base_url"))

        environment = ProxyEnvironment.from_environ(environ)
        merged.update(resolve_proxy(merged, resolved_url, environment))
        # the engine must not take a second snapshot
        merged.setdefault("proxy", environment.proxy_for(resolved_url.scheme))
        merged.setdefault("no_proxy", environment.no_proxy or None)

        for name in CREATE_METHOD_SPECIFIC_OPTIONS:
            merged.pop(name, None)

        logger.debug(f"WiseFetch.build_request: url={resolved_url}, options={sorted(merged)}")
        return ResolvedRequest(url=resolved_url, options=MappingProxyType(merged))

    async def __call__(self, *args: Any) -> ResponseLike:
        if len(args) not in (1, 2):
            raise ArgumentRangeError(
                f"Expected 1 or 2 arguments (<str>[, <dict>]), but got {_count_phrase(len(args))}."
            )

        request = self.build_request(args[0], args[1] if len(args) == 2 else None, validate=len(args) == 2)
        return await dispatch(request)

    def __repr__(self) -> str:
        return f"WiseFetch(options={dict(self._config.options)!r})"


_ROOT = WiseFetch()


async def request(*args: Any) -> ResponseLike:
    """
    Fetch a URL.

    Args:
        url: HTTP or HTTPS URL (str or httpx.URL)
        options: Optional options mapping

    Returns:
        The response, when its status is successful.
    """
    return await _ROOT(*args)


def create(*args: Any) -> WiseFetch:
    """Create a WiseFetch instance with the given base options."""
    return _ROOT.create(*args)
