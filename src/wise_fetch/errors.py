"""
Error taxonomy and validation diagnostics for wise_fetch.

All errors raised by wise_fetch itself derive from WiseFetchError and carry
a stable ``code`` for programmatic matching. Errors coming from the fetch
engine (httpx) are never wrapped.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence

INVALID_OPT_VALUE = "ERR_INVALID_OPT_VALUE"


class WiseFetchError(Exception):
    """Base class for every error raised by wise_fetch."""

    default_code: Optional[str] = None

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ArgumentTypeError(WiseFetchError, TypeError):
    """An argument or option has the wrong type."""

    default_code = "ERR_INVALID_ARG_TYPE"


class ArgumentRangeError(WiseFetchError, ValueError):
    """An argument or option has the right type but an invalid value."""

    default_code = "ERR_INVALID_ARG_VALUE"


class URIFormatError(WiseFetchError, ValueError):
    """A URL is malformed, e.g. whitespace-only or not UTF-8 when decoded."""

    default_code = "ERR_INVALID_URI"


class InvalidURLError(WiseFetchError, ValueError):
    """A URL could not be parsed or resolved into an absolute URL."""

    default_code = "ERR_INVALID_URL"


class OptionError(WiseFetchError):
    """An option is semantically invalid."""

    default_code = INVALID_OPT_VALUE


class UnconfigurableOptionError(ArgumentTypeError):
    """A frozen option was passed to a created instance."""

    default_code = "ERR_OPTION_UNCONFIGURABLE"


class AggregateOptionError(WiseFetchError):
    """Two or more diagnostics were found in one options mapping."""

    default_code = INVALID_OPT_VALUE

    def __init__(self, message: str, errors: Sequence["Diagnostic"], *, code: Optional[str] = None):
        super().__init__(message, code=code)
        self.errors = tuple(errors)


class HTTPResponseError(WiseFetchError):
    """The server responded with a status classified as unsuccessful."""

    default_code = "ERR_UNSUCCESSFUL_RESPONSE"

    def __init__(self, message: str, response: Any, *, code: Optional[str] = None):
        super().__init__(message, code=code)
        self.response = response


class AbortError(WiseFetchError):
    """The request was cancelled through its AbortSignal."""

    default_code = "ABORT_ERR"


class UnsatisfiedVersionError(WiseFetchError, RuntimeError):
    """The installed fetch engine is older than the minimum supported version."""

    default_code = "ERR_UNSATISFIED_VERSION"


class DiagnosticKind(str, Enum):
    TYPE = "type"
    RANGE = "range"
    URI = "uri"
    PLAIN = "plain"


_KIND_TO_ERROR = {
    DiagnosticKind.TYPE: ArgumentTypeError,
    DiagnosticKind.RANGE: ArgumentRangeError,
    DiagnosticKind.URI: URIFormatError,
    DiagnosticKind.PLAIN: OptionError,
}


@dataclass(frozen=True)
class Diagnostic:
    """One validation failure found in an options mapping."""

    kind: DiagnosticKind
    message: str
    cause: Optional[BaseException] = None

    @classmethod
    def type_error(cls, message: str) -> "Diagnostic":
        return cls(DiagnosticKind.TYPE, message)

    @classmethod
    def range_error(cls, message: str) -> "Diagnostic":
        return cls(DiagnosticKind.RANGE, message)

    @classmethod
    def uri_error(cls, message: str) -> "Diagnostic":
        return cls(DiagnosticKind.URI, message)

    @classmethod
    def plain(cls, message: str) -> "Diagnostic":
        return cls(DiagnosticKind.PLAIN, message)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "Diagnostic":
        """Wrap an exception raised by a URL check or a user-supplied validator."""
        if isinstance(exc, (ArgumentTypeError, TypeError)):
            kind = DiagnosticKind.TYPE
        elif isinstance(exc, URIFormatError):
            kind = DiagnosticKind.URI
        elif isinstance(exc, ArgumentRangeError):
            kind = DiagnosticKind.RANGE
        else:
            kind = DiagnosticKind.PLAIN
        return cls(kind, str(exc), cause=exc)

    def to_exception(self, code: str = INVALID_OPT_VALUE) -> WiseFetchError:
        return _KIND_TO_ERROR[self.kind](self.message, code=code)


def format_report(diagnostics: Sequence[Diagnostic]) -> str:
    """Number every diagnostic in discovery order under a summary line."""
    lines = [f"{len(diagnostics)} errors found in the options object:"]
    lines.extend(f"  {index}. {diagnostic.message}" for index, diagnostic in enumerate(diagnostics, 1))
    return "\n".join(lines)


def raise_diagnostics(diagnostics: List[Diagnostic]) -> None:
    """Raise the diagnostics of one validation pass, if any.

    A single diagnostic is raised as the error class matching its kind; two
    or more are merged into one AggregateOptionError. Both carry the
    ERR_INVALID_OPT_VALUE code.
    """
    if not diagnostics:
        return

    if len(diagnostics) == 1:
        diagnostic = diagnostics[0]
        raise diagnostic.to_exception() from diagnostic.cause

    raise AggregateOptionError(format_report(diagnostics), diagnostics)
