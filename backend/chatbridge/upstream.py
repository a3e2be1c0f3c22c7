"""Helpers for calling into the messaging session.

``with_timeout`` races a session call against a deadline. Only the caller's
wait is cancelled: the underlying call keeps running (the session offers no
cancellation), and whatever it eventually returns or raises is consumed and
dropped so an abandoned request can never write into a cache.

``call_upstream`` maps arbitrary session exceptions onto the bridge error
taxonomy so routers only ever see ``BridgeError`` subclasses.
"""
import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from .errors import BridgeError, UpstreamFailureError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _discard_late_result(task: "asyncio.Future") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned upstream call failed after timeout: %s", exc)
    else:
        logger.debug("Abandoned upstream call completed after timeout; result dropped")


async def with_timeout(
    operation: Awaitable[T],
    seconds: Optional[float],
    message: str = "Timeout",
) -> T:
    """Await *operation*, giving up after *seconds*.

    Args:
        operation: Coroutine or future to await.
        seconds: Deadline in seconds. ``None`` waits forever.
        message: Error message used when the deadline passes.

    Returns:
        The operation's result.

    Raises:
        UpstreamTimeoutError: If the deadline passes first.
    """
    task = asyncio.ensure_future(operation)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=seconds)
    except asyncio.TimeoutError as exc:
        task.add_done_callback(_discard_late_result)
        raise UpstreamTimeoutError(message) from exc
    except asyncio.CancelledError:
        task.add_done_callback(_discard_late_result)
        raise


async def call_upstream(
    operation: Awaitable[T],
    seconds: Optional[float] = None,
    timeout_message: str = "Timeout",
    error_prefix: str = "",
) -> T:
    """Await a session call and normalise its failures.

    Bridge errors pass through untouched; anything else the session raises
    becomes an ``UpstreamFailureError`` carrying the original message.
    """
    try:
        return await with_timeout(operation, seconds, timeout_message)
    except BridgeError as exc:
        if error_prefix:
            raise type(exc)(f"{error_prefix}{exc.message}") from exc
        raise
    except Exception as exc:
        detail = str(exc) or exc.__class__.__name__
        raise UpstreamFailureError(f"{error_prefix}{detail}") from exc
