"""Broadcast one logical alert to every configured transport.

Transports run concurrently via ``asyncio.gather(return_exceptions=True)``,
so one transport failing never blocks or fails the others. Each broadcast
resolves to a FanoutResult once every transport has settled; it never raises.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from Collection_Watch.models.collection import Collection
from Collection_Watch.models.events import FinishingItem, PriceDropAlert, ProgressChangeAlert
from Collection_Watch.models.status import FanoutResult
from Collection_Watch.notify.base import NotificationTransport

logger = logging.getLogger(__name__)


class NotificationFanout:
    """Concurrent, failure-isolated broadcaster.

    Usage::

        fanout = NotificationFanout([telegram, yoai])
        result = await fanout.send_new_collection(collection)
        if not result.ok:
            logger.warning("Partial delivery: %s", result.failed)
    """

    def __init__(self, transports: Sequence[NotificationTransport]) -> None:
        self._transports = list(transports)

        logger.info(
            "NotificationFanout initialized with %d transports: %s",
            len(self._transports),
            ", ".join(t.name for t in self._transports) or "(none)",
        )

    @property
    def transport_names(self) -> list[str]:
        return [transport.name for transport in self._transports]

    async def send_new_collection(self, collection: Collection) -> FanoutResult:
        return await self._broadcast(
            "new collection", lambda t: t.send_new_collection(collection)
        )

    async def send_progress_change(
        self, alert: ProgressChangeAlert, image: bytes | None = None
    ) -> FanoutResult:
        return await self._broadcast(
            "progress change", lambda t: t.send_progress_change(alert, image)
        )

    async def send_privileged_progress_change(
        self, alert: ProgressChangeAlert, image: bytes | None = None
    ) -> FanoutResult:
        return await self._broadcast(
            "privileged progress change",
            lambda t: t.send_privileged_progress_change(alert, image),
        )

    async def send_last_chance(self, collection: Collection) -> FanoutResult:
        return await self._broadcast("last chance", lambda t: t.send_last_chance(collection))

    async def send_upcoming_rewards(
        self, collections: list[Collection], *, time_boxed: bool = False
    ) -> FanoutResult:
        return await self._broadcast(
            "upcoming rewards",
            lambda t: t.send_upcoming_rewards(collections, time_boxed=time_boxed),
        )

    async def send_finishing_batch(self, items: list[FinishingItem]) -> FanoutResult:
        return await self._broadcast("finishing batch", lambda t: t.send_finishing_batch(items))

    async def send_price_drop(self, alert: PriceDropAlert) -> FanoutResult:
        return await self._broadcast("price drop", lambda t: t.send_price_drop(alert))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _broadcast(
        self,
        kind: str,
        send: Callable[[NotificationTransport], Awaitable[bool]],
    ) -> FanoutResult:
        """Run *send* against every transport and bucket the outcomes."""
        results = await asyncio.gather(
            *(send(transport) for transport in self._transports),
            return_exceptions=True,
        )

        delivered: list[str] = []
        skipped: list[str] = []
        failed: dict[str, str] = {}
        for transport, outcome in zip(self._transports, results, strict=True):
            if isinstance(outcome, BaseException):
                logger.error("%s alert via %s failed: %s", kind, transport.name, outcome)
                failed[transport.name] = str(outcome) or type(outcome).__name__
            elif outcome:
                delivered.append(transport.name)
            else:
                skipped.append(transport.name)

        logger.debug(
            "%s alert: delivered=%s skipped=%s failed=%s",
            kind,
            delivered,
            skipped,
            sorted(failed),
        )
        return FanoutResult(delivered=delivered, skipped=skipped, failed=failed)
