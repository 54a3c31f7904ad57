"""
Request dispatch and response classification.
"""
import asyncio
import logging
from typing import Any, Mapping

from .constants import NOT_MODIFIED
from .engine import get_engine
from .errors import AbortError, HTTPResponseError
from .types import ResolvedRequest, ResponseLike

logger = logging.getLogger("wise_fetch.dispatcher")


def is_successful(status: int, options: Mapping[str, Any]) -> bool:
    """
    Decide whether a response status resolves the request.

    200-299 (200-399 with redirect='manual') and 304 succeed; any status
    succeeds when resolve_unsuccessful_response is set.
    """
    if options.get("resolve_unsuccessful_response") or status == NOT_MODIFIED:
        return True
    upper = 399 if options.get("redirect") == "manual" else 299
    return 200 <= status <= upper


def classify_response(request: ResolvedRequest, response: ResponseLike) -> ResponseLike:
    """Return the response, or raise HTTPResponseError when it is unsuccessful."""
    status = response.status_code
    if is_successful(status, request.options):
        return response

    final_url = str(response.url)
    redirected = f" that is finally redirected to {final_url}" if final_url != request.href else ""
    message = (
        f"{status} ({response.reason_phrase}) responded by a {request.method} request to "
        f"{request.href}{redirected}."
    )
    logger.debug(f"classify_response: {message}")
    raise HTTPResponseError(message, response)


def _abort_error(request: ResolvedRequest) -> AbortError:
    return AbortError(f"The {request.method} request to {request.href} was aborted.")


async def _dispatch_with_signal(engine: Any, request: ResolvedRequest, signal: Any) -> ResponseLike:
    dispatch_task = asyncio.ensure_future(engine.dispatch(request.href, request.options))
    abort_task = asyncio.ensure_future(signal.wait())

    try:
        done, _ = await asyncio.wait({dispatch_task, abort_task}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        dispatch_task.cancel()
        abort_task.cancel()
        raise

    if dispatch_task in done:
        abort_task.cancel()
        return dispatch_task.result()

    dispatch_task.cancel()
    logger.debug(f"_dispatch_with_signal: aborted {request.method} {request.href}")
    raise _abort_error(request)


async def dispatch(request: ResolvedRequest) -> ResponseLike:
    """
    Send a resolved request through the engine and classify the response.

    Args:
        request: The fully resolved request

    Returns:
        The engine response when it is classified as successful.

    Raises:
        AbortError: The request's signal is or becomes aborted
        HTTPResponseError: The response status is unsuccessful
    """
    signal = request.options.get("signal")
    if signal is not None and signal.aborted:
        raise _abort_error(request)

    engine = await get_engine()

    if signal is not None and signal.aborted:
        raise _abort_error(request)

    logger.debug(f"dispatch: {request.method} {request.href}")
    if signal is None:
        response = await engine.dispatch(request.href, request.options)
    else:
        response = await _dispatch_with_signal(engine, request, signal)

    return classify_response(request, response)
