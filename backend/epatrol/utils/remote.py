"""
Bounded remote calls.

Every round trip to the store goes through `call_remote` so a stalled
connection cannot wedge a caller, and transport failures surface as
NetworkError in one place.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from epatrol.errors import NetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that mean "the store could not be reached", as opposed to the
# store rejecting the request.
TRANSPORT_ERRORS = (OSError, OperationalError, InterfaceError, ConnectionError)


def _is_transport_error(exc: BaseException) -> bool:
    if isinstance(exc, TRANSPORT_ERRORS):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


async def call_remote(
    operation: Callable[[], Awaitable[T]],
    *,
    timeout: float,
    retries: int = 0,
    what: str = "remote call",
) -> T:
    """
    Run `operation()` with a timeout.

    Args:
        operation: Zero-argument coroutine factory (called once per attempt)
        timeout: Seconds allowed per attempt
        retries: Extra attempts after a transport failure. Only pass a
            non-zero value for read-only operations.
        what: Label for log lines

    Raises:
        NetworkError: every attempt timed out or failed in transport
    """
    attempt = 0
    while True:
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.TimeoutError as e:
            error = NetworkError(f"{what} timed out after {timeout:g}s")
            cause: BaseException = e
        except Exception as e:
            if not _is_transport_error(e):
                raise
            error = NetworkError(detail=f"{what}: {e}")
            cause = e

        if attempt >= retries:
            raise error from cause

        attempt += 1
        logger.info("%s failed (%s), retrying (%d/%d)", what, cause, attempt, retries)
