"""
Options mapping validation.

validate_options() inspects a raw options mapping and raises every problem
it finds at once. Checks run in a fixed order so that the numbered lines of
an aggregated report are stable.
"""
import logging
import math
import re
from collections.abc import Mapping
from collections.abc import Set as AbstractSet
from typing import Any, Callable, Iterable, List, Optional

import httpx

from .cancellation import is_abort_signal
from .constants import (
    BASE_URL_ERROR,
    CACHE_DIR,
    CACHE_ERROR,
    CACHE_OPTIONS,
    CREATE_METHOD_SPECIFIC_OPTIONS,
    FOLLOW_ERROR,
    FROZEN_OPTION_ERROR,
    HTTP_METHODS,
    MAX_INTEGER_OPTION,
    MAX_SOCKETS_ERROR,
    METHOD_ERROR,
    POSSIBLE_TYPOS,
    REDIRECT_ERROR,
    REDIRECT_OPTIONS,
    SIGNAL_ERROR,
    SIZE_ERROR,
    TIMEOUT_ERROR,
    USER_AGENT_ERROR,
)
from .errors import (
    ArgumentTypeError,
    Diagnostic,
    UnconfigurableOptionError,
    raise_diagnostics,
)
from .headers import collect_header_diagnostics
from .inspection import inspect_value, inspect_with_kind, to_sentence
from .url import get_url_validation_error

logger = logging.getLogger("wise_fetch.validator")

OptionValidator = Callable[[Mapping], Any]

_NON_WORD = re.compile(r"\W")
_EXAMPLE_BASE = "https://example.org"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_factory_only(options: Mapping, is_base_options: bool, errors: List[Diagnostic]) -> None:
    if is_base_options:
        validators = options.get("additional_option_validators")
        if validators is None:
            return
        if not isinstance(validators, (list, tuple)):
            errors.append(Diagnostic.type_error(
                f"Expected `additional_option_validators` option to be <list[Callable]>, "
                f"but got a non-list value {inspect_with_kind(validators)}."
            ))
            return
        for index, validator in enumerate(validators):
            if not callable(validator):
                errors.append(Diagnostic.type_error(
                    f"Expected every item of `additional_option_validators` option to be callable, "
                    f"but included a non-callable value {inspect_with_kind(validator)} at {index}."
                ))
        return

    for name in CREATE_METHOD_SPECIFIC_OPTIONS:
        value = options.get(name)
        if value is None:
            continue
        errors.append(Diagnostic.type_error(
            f"`{name}` option is only available on creating new instances and cannot be used "
            f"in each function call, but got a value {inspect_with_kind(value)}."
        ))


def _enforce_frozen(options: Mapping, frozen_options: Iterable[str]) -> None:
    violated = [inspect_value(name) for name in sorted(frozen_options) if name in options]
    if not violated:
        return

    if len(violated) == 1:
        subject = f"{violated[0]} option is not configurable, but it was"
    else:
        subject = f"{to_sentence(violated)} options are not configurable, but they were"

    logger.debug(f"_enforce_frozen: rejected frozen options {violated}")
    raise UnconfigurableOptionError(f"{subject} tried to be configured.")


def _check_frozen_options(frozen_options: Any, errors: List[Diagnostic]) -> None:
    if not isinstance(frozen_options, AbstractSet):
        errors.append(Diagnostic.type_error(
            f"Expected `frozen_options` option to be <set[str]>, "
            f"but got a non-set value {inspect_with_kind(frozen_options)}."
        ))
        return

    if not frozen_options:
        errors.append(Diagnostic.range_error(
            "Expected `frozen_options` option to have at least 1 value, but got an empty set."
        ))
        return

    for name in sorted(frozen_options, key=inspect_value):
        if not isinstance(name, str):
            errors.append(Diagnostic.plain(
                f"{FROZEN_OPTION_ERROR}, but got a non-string value {inspect_with_kind(name)}."
            ))
        elif name == "":
            errors.append(Diagnostic.range_error(f"{FROZEN_OPTION_ERROR}, but got '' (empty string)."))
        elif name.strip() == "":
            errors.append(Diagnostic.range_error(
                f"{FROZEN_OPTION_ERROR}, but got a whitespace-only string {inspect_value(name)}."
            ))
        elif _NON_WORD.search(name):
            errors.append(Diagnostic.plain(
                f"{FROZEN_OPTION_ERROR}, but got an unknown option name {inspect_with_kind(name)}."
            ))


def _run_additional_validators(
    validators: Iterable[OptionValidator],
    target: Mapping,
) -> List[Diagnostic]:
    collected = []
    for validator in validators:
        try:
            validator(target)
        except Exception as exc:
            logger.debug(f"_run_additional_validators: {validator!r} raised {exc!r}")
            collected.append(Diagnostic.from_exception(exc))
    return collected


def _check_typos(options: Mapping, errors: List[Diagnostic]) -> None:
    for key in options:
        if not isinstance(key, str):
            continue
        correct = POSSIBLE_TYPOS.get(key.lower())
        if correct:
            errors.append(Diagnostic.plain(
                f"`{key}` option doesn't exist. Probably it's a typo for `{correct}`."
            ))


def _check_base_url(base_url: Any, errors: List[Diagnostic]) -> None:
    url_error = get_url_validation_error(BASE_URL_ERROR, base_url)
    if url_error is not None:
        errors.append(Diagnostic.from_exception(url_error))
        return

    parsed = httpx.URL(base_url.strip() if isinstance(base_url, str) else base_url)
    shown = inspect_value(str(base_url))

    if not parsed.path.endswith("/"):
        errors.append(Diagnostic.plain(
            f"Expected the path portion of `base_url` option to be empty or end with a slash, "
            f"for example {_EXAMPLE_BASE} and {_EXAMPLE_BASE}/abc/ are allowed but {_EXAMPLE_BASE}/abc "
            f"is not, but got {shown} whose path portion is {inspect_value(parsed.path)}."
        ))

    query = parsed.query.decode("ascii", "replace")
    for part, value in (
        ("fragment", f"#{parsed.fragment}" if parsed.fragment else ""),
        ("query string", f"?{query}" if query else ""),
    ):
        if value:
            errors.append(Diagnostic.plain(
                f"Expected `base_url` option to have no {part}, but got {shown} "
                f"whose {part} is {inspect_value(value)}."
            ))


def _check_non_empty_string(value: Any, message: str, errors: List[Diagnostic]) -> bool:
    if not isinstance(value, str):
        errors.append(Diagnostic.type_error(f"{message}, but got a non-string value {inspect_with_kind(value)}."))
        return False
    if value == "":
        errors.append(Diagnostic.range_error(f"{message}, but got '' (empty string)."))
        return False
    return True


def _check_integer(value: Any, message: str, errors: List[Diagnostic]) -> None:
    if not _is_number(value):
        errors.append(Diagnostic.type_error(f"{message}, but got a non-number value {inspect_with_kind(value)}."))
    elif isinstance(value, float) and math.isnan(value):
        errors.append(Diagnostic.range_error(f"{message}, but got NaN."))
    elif value == math.inf:
        errors.append(Diagnostic.range_error(f"{message}, but got math.inf."))
    elif value < 0:
        errors.append(Diagnostic.range_error(f"{message}, but got a negative number {inspect_value(value)}."))
    elif value > MAX_INTEGER_OPTION:
        errors.append(Diagnostic.range_error(f"{message}, but got a too large number."))
    elif isinstance(value, float) and not value.is_integer():
        errors.append(Diagnostic.range_error(f"{message}, but got a non-integer number {value!r}."))


def _check_fields(options: Mapping, errors: List[Diagnostic]) -> None:
    if options.get("cache_manager") is not None:
        errors.append(Diagnostic.type_error(
            f"`cache_manager` option defaults to {inspect_value(CACHE_DIR)} and cannot be configured, "
            f"but got a value {inspect_value(options['cache_manager'])}."
        ))

    if options.get("counter") is not None:
        errors.append(Diagnostic.type_error(
            f"`counter` option is not supported, but got a value {inspect_value(options['counter'])}."
        ))

    if options.get("base_url") is not None:
        _check_base_url(options["base_url"], errors)

    url_modifier = options.get("url_modifier")
    if url_modifier is not None and not callable(url_modifier):
        errors.append(Diagnostic.type_error(
            f"Expected `url_modifier` option to be <Callable>, "
            f"but got a non-callable value {inspect_with_kind(url_modifier)}."
        ))

    resolve_unsuccessful = options.get("resolve_unsuccessful_response")
    if resolve_unsuccessful is not None and not isinstance(resolve_unsuccessful, bool):
        errors.append(Diagnostic.type_error(
            f"Expected `resolve_unsuccessful_response` option to be <bool>, "
            f"but got a non-bool value {inspect_with_kind(resolve_unsuccessful)}."
        ))

    signal = options.get("signal")
    if signal is not None and not is_abort_signal(signal):
        errors.append(Diagnostic.type_error(f"{SIGNAL_ERROR}, but got {inspect_with_kind(signal)}."))

    user_agent = options.get("user_agent")
    if user_agent is not None and _check_non_empty_string(user_agent, USER_AGENT_ERROR, errors):
        if user_agent.strip() == "":
            errors.append(Diagnostic.range_error(
                f"{USER_AGENT_ERROR}, but got a whitespace-only string {inspect_value(user_agent)}."
            ))

    method = options.get("method")
    if method is not None and _check_non_empty_string(method, METHOD_ERROR, errors):
        if method.upper() not in HTTP_METHODS:
            errors.append(Diagnostic.range_error(
                f"{METHOD_ERROR}, but got an unknown method {inspect_value(method)}."
            ))

    if options.get("headers") is not None:
        errors.extend(collect_header_diagnostics(options["headers"]))

    redirect = options.get("redirect")
    if redirect is not None and _check_non_empty_string(redirect, REDIRECT_ERROR, errors):
        if redirect not in REDIRECT_OPTIONS:
            errors.append(Diagnostic.range_error(
                f"{REDIRECT_ERROR}, but got an invalid value {inspect_value(redirect)}."
            ))

    cache = options.get("cache")
    if cache is not None:
        if not isinstance(cache, str):
            errors.append(Diagnostic.type_error(
                f"{CACHE_ERROR}, but got a non-string value {inspect_with_kind(cache)}."
            ))
        elif cache not in CACHE_OPTIONS:
            errors.append(Diagnostic.range_error(f"{CACHE_ERROR}, but got none of them {inspect_value(cache)}."))

    integer_options = {
        "follow": FOLLOW_ERROR,
        "timeout": TIMEOUT_ERROR,
        "size": SIZE_ERROR,
        "max_sockets": MAX_SOCKETS_ERROR,
    }

    max_sockets = options.get("max_sockets")
    if _is_number(max_sockets) and max_sockets == 0:
        errors.append(Diagnostic.range_error(f"{MAX_SOCKETS_ERROR}, but got {inspect_value(max_sockets)}."))
        del integer_options["max_sockets"]
    elif _is_number(max_sockets) and max_sockets == math.inf:
        del integer_options["max_sockets"]

    for name, message in integer_options.items():
        value = options.get(name)
        if value is not None:
            _check_integer(value, message, errors)


def validate_options(
    options: Any,
    *,
    is_base_options: bool = False,
    frozen_options: Optional[Iterable[str]] = None,
    additional_option_validators: Optional[Iterable[OptionValidator]] = None,
    base_options: Optional[Mapping] = None,
) -> None:
    """
    Validate an options mapping, raising every problem found.

    Args:
        options: The raw options mapping (or None)
        is_base_options: True when validating the argument of create()
        frozen_options: Option names frozen by the instance receiving these options
        additional_option_validators: Instance validators run against the merged options
        base_options: Instance options merged under options before running validators

    Raises:
        ArgumentTypeError: options is not a mapping
        UnconfigurableOptionError: a frozen option is present
        URIFormatError: base_url is not RFC 3986 compatible
        WiseFetchError: one invalid field (raised as its own kind)
        AggregateOptionError: two or more invalid fields
    """
    if options is None:
        options = {}

    if not isinstance(options, Mapping):
        raise ArgumentTypeError(
            f"Expected options mapping (<dict>), but got {inspect_with_kind(options)}.",
            code="ERR_INVALID_ARG_TYPE",
        )

    errors: List[Diagnostic] = []

    _check_factory_only(options, is_base_options, errors)

    if frozen_options:
        _enforce_frozen(options, frozen_options)
    elif options.get("frozen_options") is not None:
        _check_frozen_options(options["frozen_options"], errors)

    additional_errors: List[Diagnostic] = []
    if additional_option_validators:
        target = {**base_options, **options} if base_options else dict(options)
        additional_errors = _run_additional_validators(additional_option_validators, target)

    _check_typos(options, errors)
    _check_fields(options, errors)
    errors.extend(additional_errors)

    logger.debug(
        f"validate_options: is_base_options={is_base_options}, keys={sorted(map(str, options))}, "
        f"diagnostics={len(errors)}"
    )
    raise_diagnostics(errors)
