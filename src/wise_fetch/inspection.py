"""
Deterministic value rendering for diagnostic messages.

Every message produced by wise_fetch embeds the offending value. The
helpers here render values the same way on every run (no memory addresses,
sorted set members) so messages can be asserted verbatim.
"""
import types
from typing import Any, Iterable

_KIND_SUFFIXED_TYPES = (list, tuple, dict, set, frozenset)
_FUNCTION_TYPES = (
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.BuiltinMethodType,
)


def inspect_value(value: Any) -> str:
    """Render a value like repr(), without memory addresses."""
    if isinstance(value, str):
        return repr(value)

    if isinstance(value, _FUNCTION_TYPES):
        kind = "built-in function" if isinstance(value, types.BuiltinFunctionType) else "function"
        return f"<{kind} {getattr(value, '__qualname__', value.__name__)}>"

    if type(value) in (list, tuple):
        inner = ", ".join(inspect_value(item) for item in value)
        if type(value) is list:
            return f"[{inner}]"
        return f"({inner},)" if len(value) == 1 else f"({inner})"

    if type(value) is dict:
        inner = ", ".join(f"{inspect_value(k)}: {inspect_value(v)}" for k, v in value.items())
        return f"{{{inner}}}"

    if type(value) in (set, frozenset):
        if not value:
            return f"{type(value).__name__}()"
        inner = "{" + ", ".join(sorted(inspect_value(item) for item in value)) + "}"
        return inner if type(value) is set else f"frozenset({inner})"

    if not isinstance(value, type) and type(value).__repr__ is object.__repr__:
        return f"<{type(value).__qualname__} object>"

    return repr(value)


def inspect_with_kind(value: Any) -> str:
    """Render a value followed by its kind when the rendering alone is ambiguous.

    Examples:
        >>> inspect_with_kind("123")
        "'123' (str)"
        >>> inspect_with_kind("")
        "'' (empty string)"
        >>> inspect_with_kind([-0])
        '[0] (list)'
    """
    if value is None:
        return "None"

    if isinstance(value, str):
        if value == "":
            return "'' (empty string)"
        if value.strip() == "":
            return f"{value!r} (whitespace-only string)"
        return f"{value!r} (str)"

    if isinstance(value, bool):
        return f"{value!r} (bool)"

    if isinstance(value, (int, float, complex)):
        return f"{value!r} ({type(value).__name__})"

    if type(value) in _KIND_SUFFIXED_TYPES:
        return f"{inspect_value(value)} ({type(value).__name__})"

    return inspect_value(value)


def to_sentence(items: Iterable[str]) -> str:
    """Join items as an English enumeration: 'a', 'a and b', 'a, b and c'."""
    items = list(items)
    if len(items) <= 1:
        return "".join(items)
    return f"{', '.join(items[:-1])} and {items[-1]}"
