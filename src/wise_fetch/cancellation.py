"""
Cancellation tokens for wise_fetch requests.

Example:
    >>> controller = AbortController()
    >>> task = asyncio.create_task(wise_fetch.request(url, {"signal": controller.signal}))
    >>> controller.abort()
"""
import asyncio
import logging
from typing import Any, Optional

logger = logging.getLogger("wise_fetch.cancellation")


class AbortSignal:
    """Read-only view of an AbortController's state."""

    def __init__(self) -> None:
        self._aborted = False
        self._reason: Any = None
        self._event: Optional[asyncio.Event] = None

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Any:
        return self._reason

    async def wait(self) -> None:
        """Block until the signal is aborted."""
        if self._aborted:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()

    def _abort(self, reason: Any) -> None:
        if self._aborted:
            return
        self._aborted = True
        self._reason = reason
        if self._event is not None:
            self._event.set()

    def __repr__(self) -> str:
        return f"AbortSignal(aborted={self._aborted})"


class AbortController:
    """Owner of an AbortSignal; calling abort() cancels every request using it."""

    def __init__(self) -> None:
        self.signal = AbortSignal()

    def abort(self, reason: Any = None) -> None:
        logger.debug(f"AbortController.abort: reason={reason!r}")
        self.signal._abort(reason)


def is_abort_signal(value: Any) -> bool:
    """Check that a value is shaped like an AbortSignal."""
    return isinstance(getattr(value, "aborted", None), bool) and callable(getattr(value, "wait", None))
