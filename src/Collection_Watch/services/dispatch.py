"""Per-destination dispatch queue with spacing and a single rate-limit retry.

Every outbound chat call goes through ``DispatchQueue.execute`` under a
destination key (one key per transport and bot identity). Calls sharing a key
run strictly one at a time in arrival order; calls on different keys never
wait on each other.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from Collection_Watch.utils.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_SPACING_SECONDS: float = 3.0
DEFAULT_RETRY_AFTER_SECONDS: float = 16.0


class DispatchQueue:
    """Serialized, throttled executor keyed by destination.

    Before a call starts, the queue waits until at least ``spacing_seconds``
    have passed since the previous call on the same key completed. A
    ``RateLimitExceededError`` is retried exactly once after the advised
    ``retry_after`` (or the fallback delay); a second failure propagates.

    Usage::

        queue = DispatchQueue(spacing_seconds=3.0)

        result = await queue.execute(
            lambda: bot.send_message(channel_id, text),
            key="main_bot",
        )
    """

    def __init__(
        self,
        spacing_seconds: float = DEFAULT_SPACING_SECONDS,
        fallback_retry_seconds: float = DEFAULT_RETRY_AFTER_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._spacing = spacing_seconds
        self._fallback_retry = fallback_retry_seconds
        self._clock = clock
        self._sleep = sleep

        # asyncio.Lock wakes waiters in FIFO order
        self._locks: dict[str, asyncio.Lock] = {}
        self._last_completed: dict[str, float] = {}

        logger.info(
            "DispatchQueue initialized: spacing=%.1fs, fallback_retry=%.1fs",
            spacing_seconds,
            fallback_retry_seconds,
        )

    def pending_keys(self) -> list[str]:
        """Keys that currently have a call in flight."""
        return [key for key, lock in self._locks.items() if lock.locked()]

    async def execute(
        self,
        call: Callable[[], Awaitable[T]],
        *,
        key: str,
    ) -> T:
        """Run *call* once its key is free and spaced, retrying once on 429.

        Args:
            call: Zero-argument factory returning a fresh awaitable. It is
                invoked again for the retry, so it must not return a
                coroutine object that was already awaited.
            key: Destination key that serializes this call.

        Returns:
            Whatever *call* produces.

        Raises:
            RateLimitExceededError: If the retry is rate limited as well.
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            await self._wait_for_spacing(key)
            try:
                return await call()
            except RateLimitExceededError as exc:
                delay = self._get_retry_delay(exc)
                logger.warning("Rate limited on %s, retrying once in %.1fs", key, delay)
                await self._sleep(delay)
                try:
                    return await call()
                except RateLimitExceededError:
                    logger.error("Rate limited again on %s, giving up", key)
                    raise
            finally:
                self._last_completed[key] = self._clock()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _wait_for_spacing(self, key: str) -> None:
        """Sleep out the remainder of the spacing window for *key*."""
        last = self._last_completed.get(key)
        if last is None:
            return
        remaining = self._spacing - (self._clock() - last)
        if remaining > 0:
            logger.debug("Spacing %s: waiting %.2fs", key, remaining)
            await self._sleep(remaining)

    def _get_retry_delay(self, exc: RateLimitExceededError) -> float:
        """Server-advised wait when present and positive, else the fallback."""
        retry_after: float | None = getattr(exc, "retry_after", None)
        if retry_after is not None and retry_after > 0:
            return retry_after
        return self._fallback_retry
