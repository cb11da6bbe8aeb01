"""
Serialized request queue + rate-limit retry for oracle calls.

The oracle penalizes concurrent requests, so every call goes through one
FIFO chain: an operation waits for its predecessor to settle, sleeps a fixed
quiescence delay, then runs. A failing operation never blocks the chain;
only its own caller sees the exception.

Rate-limit windows on the oracle are minutes long, so the retry wrapper adds
a large fixed penalty on top of the exponential backoff. Under sustained
throttling callers should expect multi-minute latency.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from sportsim.llm.errors import OracleError, RateLimited
from sportsim.telemetry import record_rate_limit_retry, set_queue_depth

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]
Sleep = Callable[[float], Awaitable[Any]]

RATE_LIMIT_STATUS_CODES = {429, 503}
RATE_LIMIT_MARKERS = ("429", "resource_exhausted", "quota")


class RequestScheduler:
    """FIFO admission queue guaranteeing at most one in-flight oracle call."""

    def __init__(self, delay_seconds: float = 1.5, sleep: Sleep = asyncio.sleep):
        self.delay_seconds = delay_seconds
        self._sleep = sleep
        self._tail: Optional[asyncio.Future] = None
        self._pending = 0

    @property
    def pending(self) -> int:
        """Operations queued or running."""
        return self._pending

    async def schedule(self, operation: Operation) -> Any:
        """
        Run `operation` after every previously scheduled operation has settled.

        Args:
            operation: Zero-argument coroutine function.

        Returns:
            Whatever the operation returns. Its exceptions propagate to this
            caller only.
        """
        loop = asyncio.get_running_loop()
        previous = self._tail
        done: asyncio.Future = loop.create_future()
        self._tail = done
        self._pending += 1
        set_queue_depth(self._pending)

        try:
            if previous is not None:
                # shield: a cancelled waiter must not cancel the predecessor's marker
                await asyncio.shield(previous)
            if self.delay_seconds > 0:
                await self._sleep(self.delay_seconds)
            return await operation()
        finally:
            self._pending -= 1
            set_queue_depth(self._pending)
            if previous is None or previous.done():
                _settle(done)
            else:
                # Cancelled while still waiting: hand over only once the predecessor settles
                previous.add_done_callback(lambda _: _settle(done))


def _settle(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


def is_rate_limit_error(error: BaseException) -> bool:
    """Classify an exception as a rate-limit signal."""
    if isinstance(error, RateLimited):
        return True
    if isinstance(error, OracleError):
        # Already classified by the client; the message may quote an arbitrary body
        return False
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RATE_LIMIT_STATUS_CODES
    message = str(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def backoff_seconds(attempt: int, initial_backoff: float, penalty: float) -> float:
    """Wait before retry number `attempt + 1`: initial * 2^attempt + penalty."""
    return initial_backoff * (2 ** attempt) + penalty


async def call_with_retry(
    operation: Operation,
    retries: int = 3,
    initial_backoff: float = 2.0,
    penalty: float = 70.0,
    sleep: Sleep = asyncio.sleep,
) -> Any:
    """
    Run `operation`, retrying rate-limit failures with exponential backoff.

    Args:
        operation: Zero-argument coroutine function.
        retries: Total attempts allowed.
        initial_backoff: Base wait in seconds.
        penalty: Fixed extra wait in seconds added to every backoff.
        sleep: Awaitable sleep (injectable for tests).

    Raises:
        RateLimited: When every attempt was rate limited.
        Exception: Any non rate-limit error, immediately.
    """
    attempts = max(1, retries)
    for attempt in range(attempts):
        try:
            return await operation()
        except Exception as e:
            if not is_rate_limit_error(e):
                raise
            if attempt == attempts - 1:
                logger.error(f"[SCHEDULER] Rate limited after {attempts} attempts: {e}")
                if isinstance(e, RateLimited):
                    raise
                raise RateLimited(str(e)) from e

            wait = backoff_seconds(attempt, initial_backoff, penalty)
            record_rate_limit_retry()
            logger.warning(
                f"[SCHEDULER] Rate limited, retrying in {wait:.1f}s "
                f"(attempt {attempt + 1}/{attempts})"
            )
            await sleep(wait)
