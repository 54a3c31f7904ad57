"""
Header normalization for wise_fetch.

Headers may be given as a mapping or as an iterable of name/value pairs.
Every accepted shape converges on a HeaderSet: an immutable,
case-insensitive mapping with lower-cased field names.
"""
import logging
from collections.abc import Iterator, Mapping
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple

from .constants import HEADERS_ERROR
from .errors import Diagnostic, raise_diagnostics
from .inspection import inspect_with_kind, to_sentence

logger = logging.getLogger("wise_fetch.headers")

_NON_OBJECT_TYPES = (str, bytes, bytearray, int, float, complex)
_MISSING = object()


def _to_text(value: Any) -> str:
    """Render a header name or value as text, decoding bytes as latin-1 like httpx."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("latin-1")
    return str(value)


class HeadersShape(Enum):
    MAPPING = "mapping"
    PAIRS = "pairs"
    NON_CALLABLE_ITER = "non_callable_iter"
    INVALID = "invalid"


def _is_object_like(value: Any) -> bool:
    return value is not None and not isinstance(value, _NON_OBJECT_TYPES) and not callable(value)


def classify_headers(value: Any) -> HeadersShape:
    """Classify a headers value into one of the accepted shapes."""
    if isinstance(value, Mapping):
        return HeadersShape.MAPPING
    if not _is_object_like(value):
        return HeadersShape.INVALID

    iter_attr = getattr(type(value), "__iter__", _MISSING)
    if iter_attr is _MISSING:
        return HeadersShape.INVALID
    if not callable(iter_attr):
        return HeadersShape.NON_CALLABLE_ITER
    return HeadersShape.PAIRS


def materialize_headers(value: Any) -> Any:
    """Turn a one-shot iterator of pairs into a list so it can be read twice."""
    if isinstance(value, Iterator) and not isinstance(value, Mapping):
        return list(value)
    return value


def _collect_fields(value: Any, diagnostics: List[Diagnostic]) -> List[Any]:
    shape = classify_headers(value)

    if shape is HeadersShape.MAPPING:
        return list(value.keys())

    if shape is HeadersShape.INVALID:
        diagnostics.append(Diagnostic.type_error(f"{HEADERS_ERROR}, but got {inspect_with_kind(value)}."))
        return []

    if shape is HeadersShape.NON_CALLABLE_ITER:
        diagnostics.append(Diagnostic.type_error(
            f"{HEADERS_ERROR}, but got {inspect_with_kind(value)} "
            f"whose `__iter__` attribute is defined but not callable."
        ))
        return []

    fields = []
    for pair in value:
        prefix = f"{HEADERS_ERROR}, but got {inspect_with_kind(value)}"

        if not _is_object_like(pair):
            diagnostics.append(Diagnostic.type_error(
                f"{prefix}, one of whose header pairs is a non-object value {inspect_with_kind(pair)}."
            ))
            continue

        if not callable(getattr(type(pair), "__iter__", None)):
            diagnostics.append(Diagnostic.type_error(
                f"{prefix}, one of whose header pairs {inspect_with_kind(pair)} is not iterable."
            ))
            continue

        items = list(pair)
        if len(items) != 2:
            diagnostics.append(Diagnostic.type_error(
                f"{prefix}, one of whose header pairs {inspect_with_kind(pair)} "
                f"is not a one-to-one name/value tuple."
            ))
            continue

        fields.append(items[0])

    return fields


def _duplicate_diagnostics(fields: Iterable[Any]) -> List[Diagnostic]:
    clusters: Dict[str, List[str]] = {}
    for field in fields:
        name = _to_text(field)
        clusters.setdefault(name.lower(), []).append(name)

    diagnostics = []
    for members in clusters.values():
        if len(members) < 2:
            continue
        target = members[0]
        diagnostics.append(Diagnostic.plain(
            f"The headers contain practically duplicate fields {to_sentence(f'`{m}`' for m in members)} "
            f"as RFC 7230 says header fields are case insensitive "
            f"(https://tools.ietf.org/html/rfc7230#section-3.2). If the `{target}` field needs to have "
            f"multiple values, list them as a comma-separated value in a single `{target}` field "
            f"and remove the others."
        ))
    return diagnostics


def collect_header_diagnostics(value: Any) -> List[Diagnostic]:
    """Return every diagnostic for a headers value, in discovery order."""
    diagnostics: List[Diagnostic] = []
    fields = _collect_fields(value, diagnostics)
    diagnostics.extend(_duplicate_diagnostics(fields))
    return diagnostics


def _iter_items(value: Any) -> Iterable[Tuple[Any, Any]]:
    if classify_headers(value) is HeadersShape.MAPPING:
        return value.items()
    return (tuple(pair) for pair in value)


class HeaderSet(Mapping):
    """Immutable case-insensitive header mapping with lower-cased field names."""

    __slots__ = ("_fields",)

    def __init__(self, fields: Mapping = None):
        self._fields: Dict[str, str] = {}
        for name, value in (fields or {}).items():
            self._fields[_to_text(name).lower()] = _to_text(value)

    @classmethod
    def from_value(cls, value: Any) -> "HeaderSet":
        """Canonicalize any accepted headers value, raising its diagnostics if invalid."""
        if isinstance(value, HeaderSet):
            return value
        value = materialize_headers(value)
        raise_diagnostics(collect_header_diagnostics(value))
        return cls(dict(_iter_items(value)))

    def merged(self, other: Mapping) -> "HeaderSet":
        """Return a new set where fields of other override same-named fields of self."""
        fields = dict(self._fields)
        for name, value in HeaderSet(other).items():
            fields[name] = value
        return HeaderSet(fields)

    def to_dict(self) -> Dict[str, str]:
        return dict(self._fields)

    def __getitem__(self, name: str) -> str:
        return self._fields[_to_text(name).lower()]

    def __contains__(self, name: object) -> bool:
        return _to_text(name).lower() in self._fields

    def __iter__(self):
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, HeaderSet):
            return self._fields == other._fields
        if isinstance(other, Mapping):
            return self._fields == {_to_text(k).lower(): _to_text(v) for k, v in other.items()}
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        return f"HeaderSet({self._fields!r})"
