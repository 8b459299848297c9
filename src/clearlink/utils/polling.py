"""Deadline-bounded polling.

Retries an async check at a fixed interval until it returns, raises a
non-transient error, or the deadline passes. Each attempt is bounded by the
time left, so cancelling or timing out never leaves a check running.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PollTimeoutError(Exception):
    """Raised when the deadline passes before a check succeeds."""

    def __init__(self, timeout: float, attempts: int, last_error: Optional[BaseException]):
        self.timeout = timeout
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Timed out after {timeout}s ({attempts} attempts). Last error: {last_error!s}"
        )


async def wait_for(
    check: Callable[[], Awaitable[T]],
    timeout: float,
    interval: float,
    transient: tuple[type[BaseException], ...] = (),
    description: str = "condition",
) -> T:
    """Poll check until it returns a value.

    Args:
        check: Async callable; raising one of ``transient`` means "not yet"
        timeout: Total seconds to keep trying
        interval: Fixed seconds between attempts
        transient: Exception types that are retried
        description: What is awaited, for logging

    Returns:
        The first value check returns

    Raises:
        PollTimeoutError: If the deadline passes first
        Exception: Any non-transient error from check, immediately
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    last_error: Optional[BaseException] = None
    attempts = 0

    while True:
        remaining = deadline - loop.time()
        if remaining <= 0:
            break

        attempts += 1
        try:
            return await asyncio.wait_for(check(), timeout=remaining)
        except asyncio.TimeoutError as e:
            last_error = last_error or e
            break
        except transient as e:
            last_error = e
            logger.debug(f"Waiting for {description} (attempt {attempts}): {e}")

        remaining = deadline - loop.time()
        if remaining <= 0:
            break
        await asyncio.sleep(min(interval, remaining))

    logger.warning(f"Gave up waiting for {description} after {timeout}s ({attempts} attempts)")
    raise PollTimeoutError(timeout, attempts, last_error)
