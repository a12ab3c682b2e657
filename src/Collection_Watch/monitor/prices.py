"""Lowest-price drop detection for the real-time listing feed.

Updates arrive in batches from an external feed. They are grouped by
collection; different collections are processed concurrently while updates
for the same collection run strictly in order under a per-collection lock.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Hashable, Iterable

from Collection_Watch.models.collection import Collection
from Collection_Watch.models.enums import PriceUpdateType
from Collection_Watch.models.events import PriceDropAlert, PriceListing, PriceUpdate
from Collection_Watch.monitor.store import CollectionStore
from Collection_Watch.notify.fanout import NotificationFanout

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Listings at or below this market price are ignored entirely
MIN_MARKET_PRICE: float = 2.0
# Collections at or below this original price never alert
MIN_ORIGINAL_PRICE: float = 2.0

NOTIFICATION_EXPIRY_SECONDS: float = 30 * 60
DENIAL_EXPIRY_SECONDS: float = 30 * 60


def drop_ratio(price: float) -> float:
    """Fraction of the previous lowest a new price must fall below."""
    if price < 10:  # noqa: PLR2004
        return 0.93
    if price <= 20:  # noqa: PLR2004
        return 0.94
    if price < 50:  # noqa: PLR2004
        return 0.945
    return 0.95


def is_significant_drop(
    listing: PriceListing,
    previous: PriceListing,
    collection: Collection | None,
) -> bool:
    if collection is None or collection.original_price <= MIN_ORIGINAL_PRICE:
        return False
    return listing.price < drop_ratio(listing.price) * previous.price


class KeyedLock:
    """One asyncio.Lock per key, created on first use.

    Usage::

        locks = KeyedLock()
        async with locks.hold(collection_id):
            ...
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}

    def hold(self, key: Hashable) -> asyncio.Lock:
        return self._locks.setdefault(key, asyncio.Lock())

    def locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


class PriceDropMonitor:
    """Tracks the lowest listed price per collection and reports sharp drops.

    A drop alerts only when no alert for the collection went out in the last
    30 minutes and the collection is not in a denial cooldown. Both marks
    expire lazily when read.
    """

    def __init__(
        self,
        store: CollectionStore,
        fanout: NotificationFanout,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._fanout = fanout
        self._clock = clock
        self._locks = KeyedLock()

        self._lowest: dict[int, PriceListing] = {}
        self._last_notified: dict[int, tuple[float, float]] = {}
        self._denied: dict[int, float] = {}

    def lowest_price(self, collection_id: int) -> PriceListing | None:
        return self._lowest.get(collection_id)

    def initialize_lowest_prices(self, listings: Iterable[PriceListing]) -> int:
        """Seed lowest prices from a full feed snapshot. Returns the count kept."""
        kept = 0
        for listing in listings:
            if listing.market_price <= MIN_MARKET_PRICE:
                continue
            self._lowest[listing.collection_id] = listing
            kept += 1
        logger.info("Initialized lowest prices for %d collections", kept)
        return kept

    def deny_collection(self, collection_id: int) -> None:
        """Silence price alerts for *collection_id* for the cooldown window."""
        self._denied[collection_id] = self._clock()

    def is_denied(self, collection_id: int) -> bool:
        denied_at = self._denied.get(collection_id)
        if denied_at is None:
            return False
        if self._clock() - denied_at > DENIAL_EXPIRY_SECONDS:
            del self._denied[collection_id]
            return False
        return True

    def recently_notified(self, collection_id: int) -> bool:
        entry = self._last_notified.get(collection_id)
        if entry is None:
            return False
        _price, notified_at = entry
        if self._clock() - notified_at > NOTIFICATION_EXPIRY_SECONDS:
            del self._last_notified[collection_id]
            return False
        return True

    async def handle_price_updates(self, updates: list[PriceUpdate]) -> list[PriceDropAlert]:
        """Process a feed batch; returns the alerts that were sent."""
        grouped: dict[int, list[PriceUpdate]] = {}
        for update in updates:
            grouped.setdefault(update.data.collection_id, []).append(update)

        results = await asyncio.gather(
            *(self._process_collection(cid, batch) for cid, batch in grouped.items())
        )
        return [alert for batch_alerts in results for alert in batch_alerts]

    async def _process_collection(
        self,
        collection_id: int,
        updates: list[PriceUpdate],
    ) -> list[PriceDropAlert]:
        alerts: list[PriceDropAlert] = []
        async with self._locks.hold(collection_id):
            for update in updates:
                if update.type == PriceUpdateType.REMOVE:
                    self._remove(update.data)
                    continue
                alert = await self._handle_add(update.data)
                if alert is not None:
                    alerts.append(alert)
        return alerts

    def _remove(self, listing: PriceListing) -> None:
        current = self._lowest.get(listing.collection_id)
        if current is not None and current.id == listing.id:
            del self._lowest[listing.collection_id]

    async def _handle_add(self, listing: PriceListing) -> PriceDropAlert | None:
        if listing.market_price <= MIN_MARKET_PRICE:
            return None

        previous = self._lowest.get(listing.collection_id)
        self._lowest[listing.collection_id] = listing
        if previous is None:
            logger.info(
                "New lowest price for collection %d: %s",
                listing.collection_id,
                listing.price,
            )
            return None

        collection = self._store.get_by_id(listing.collection_id)
        if not is_significant_drop(listing, previous, collection):
            return None
        if self.recently_notified(listing.collection_id) or self.is_denied(listing.collection_id):
            return None
        assert collection is not None  # noqa: S101

        alert = PriceDropAlert(listing=listing, collection=collection, previous_lowest=previous)
        self._last_notified[listing.collection_id] = (listing.price, self._clock())
        logger.info(
            "Price drop for %s: %s -> %s (-%.2f%%)",
            collection.name,
            previous.price,
            listing.price,
            alert.drop_percent,
        )
        await self._fanout.send_price_drop(alert)
        return alert
