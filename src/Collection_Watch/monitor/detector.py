"""Progress-change detection against the previous poll.

Every call compares a collection's progress with the value seen on the
previous poll under the same (ID, partition) key, decides whether anyone
should hear about it, and then records the new value as "previous". The
record step happens exactly once per call, whatever the outcome.

Two audiences are served independently:

- the public channels, gated by the delta policy, the last-notified level,
  and (for time-boxed collections) the daily revenue signal;
- the privileged channel, gated by its own coarser table or a one-shot jump
  to a high completion level.
"""

from __future__ import annotations

import datetime
import logging
import math
from collections.abc import Callable

from Collection_Watch.models.collection import Collection
from Collection_Watch.models.enums import PartitionType
from Collection_Watch.models.events import ChangeRecord, FinishingItem, ProgressChangeAlert
from Collection_Watch.models.revenue import LatestRevenue, RevenuePoint
from Collection_Watch.monitor import policy
from Collection_Watch.notify.fanout import NotificationFanout
from Collection_Watch.services.charts import ChartRenderer, build_chart_points
from Collection_Watch.services.marketplace import MarketplaceClient
from Collection_Watch.services.revenue import latest_revenue, revenue_gate
from Collection_Watch.utils.exceptions import MarketplaceError

logger = logging.getLogger(__name__)

# Finishing window: reward countdown in (0, 5] minutes
FINISHING_WINDOW_MINUTES: float = 5.0

CHART_PERIOD_TIME_BOXED: str = "month"
CHART_PERIOD_STANDARD: str = "year"

ProgressKey = tuple[int, PartitionType]


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def chart_period(collection: Collection) -> str:
    return CHART_PERIOD_TIME_BOXED if collection.is_time_boxed else CHART_PERIOD_STANDARD


class ChangeDetector:
    """Owns the per-key progress bookkeeping and turns moves into alerts.

    Usage::

        detector = ChangeDetector(marketplace, fanout, renderer=renderer)
        for record in store.records():
            await detector.process_collection(record.collection, record.partition)
        await detector.check_finishing(partner + time_boxed)
    """

    def __init__(
        self,
        marketplace: MarketplaceClient,
        fanout: NotificationFanout,
        *,
        renderer: ChartRenderer | None = None,
        privileged_ids: frozenset[int] = frozenset(),
        privileged_enabled: bool = True,
        clock: Callable[[], datetime.datetime] = _utc_now,
    ) -> None:
        self._marketplace = marketplace
        self._fanout = fanout
        self._renderer = renderer
        self._privileged_ids = privileged_ids
        self._privileged_enabled = privileged_enabled
        self._clock = clock

        self._previous: dict[ProgressKey, float] = {}
        self._last_notified: dict[ProgressKey, float] = {}
        self._privileged_notified: dict[int, float] = {}
        self._finishing_alerted: set[int] = set()

    # ------------------------------------------------------------------
    # Bookkeeping accessors
    # ------------------------------------------------------------------

    def previous_progress(self, collection_id: int, partition: PartitionType) -> float | None:
        return self._previous.get((collection_id, partition))

    def last_notified(self, collection_id: int, partition: PartitionType) -> float | None:
        return self._last_notified.get((collection_id, partition))

    def finishing_alerted(self, collection_id: int) -> bool:
        return collection_id in self._finishing_alerted

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect_change(
        self, collection: Collection, partition: PartitionType
    ) -> ChangeRecord | None:
        """Synchronous qualification without any I/O.

        Applies the noise floor, the completion boundary, the delta policy and
        the last-notified check, then records the new progress. Returns the
        change when it qualifies for a public alert.
        """
        key = (collection.id, partition)
        try:
            change = self._measure(collection, partition)
            if change is None or not self._qualifies(collection, change):
                return None
            return change
        finally:
            self._previous[key] = collection.percent

    async def process_collection(
        self,
        collection: Collection,
        partition: PartitionType,
    ) -> ProgressChangeAlert | None:
        """Full pipeline for one collection: privileged path, gates, delivery.

        Returns:
            The alert handed to the fan-out, or None when suppressed.
        """
        key = (collection.id, partition)
        try:
            change = self._measure(collection, partition)
            if change is None:
                return None

            await self._check_privileged(collection, change)

            if not self._qualifies(collection, change):
                return None
            return await self._deliver(collection, change)
        finally:
            self._previous[key] = collection.percent

    async def check_finishing(self, collections: list[Collection]) -> list[FinishingItem]:
        """Send one batched alert for time-boxed collections about to close.

        A collection qualifies when its reward countdown lies in
        (0, 5] minutes and it has not been included in an earlier batch.
        Collections whose revenue fetch fails are left for the next cycle.
        """
        items: list[FinishingItem] = []
        for collection in collections:
            if not self._is_finishing(collection):
                continue
            try:
                series = await self._marketplace.fetch_revenue_series(
                    collection, CHART_PERIOD_TIME_BOXED
                )
            except MarketplaceError as exc:
                logger.error("Error getting revenue for finishing %s: %s", collection.name, exc)
                continue
            revenue = latest_revenue(collection, series)
            items.append(FinishingItem(collection=collection, latest_revenue=revenue))

        if not items:
            return items

        logger.info("Sending finishing alert for %d collections", len(items))
        await self._fanout.send_finishing_batch(items)
        self._finishing_alerted.update(item.collection.id for item in items)
        return items

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _measure(self, collection: Collection, partition: PartitionType) -> ChangeRecord | None:
        """Build the change record, or None without a baseline or above noise."""
        previous = self._previous.get((collection.id, partition))
        if previous is None:
            return None

        delta = policy.absolute_delta(previous, collection.percent)
        if not policy.clears_noise_floor(delta):
            return None

        return ChangeRecord(
            collection_id=collection.id,
            partition=partition,
            previous=previous,
            current=collection.percent,
            delta=delta,
            signed_delta=round(collection.percent - previous, policy.DELTA_PRECISION),
            threshold=policy.resolve_delta(collection),
        )

    def _qualifies(self, collection: Collection, change: ChangeRecord) -> bool:
        if policy.below_completion(collection, change.previous):
            return False
        if change.delta < change.threshold:
            return False
        last = self._last_notified.get((change.collection_id, change.partition))
        if last is not None and policy.absolute_delta(last, change.current) < change.threshold:
            logger.debug("%s: already notified near %.2f%%", collection.name, last)
            return False
        return True

    def _is_finishing(self, collection: Collection) -> bool:
        if not collection.is_time_boxed or collection.id in self._finishing_alerted:
            return False
        minutes = (collection.reward_date or 0) / 60
        return 0 < minutes <= FINISHING_WINDOW_MINUTES

    async def _fetch_series(self, collection: Collection) -> list[RevenuePoint] | None:
        """Chart series for *collection*, or None when it cannot be fetched."""
        try:
            return await self._marketplace.fetch_revenue_series(
                collection, chart_period(collection)
            )
        except MarketplaceError as exc:
            logger.warning("No revenue series for %s: %s", collection.name, exc)
            return None

    async def _render(
        self,
        collection: Collection,
        previous: float,
        series: list[RevenuePoint] | None,
    ) -> bytes | None:
        """Render the chart. Raises whatever the renderer raises."""
        if self._renderer is None:
            return None
        points = build_chart_points(collection, previous, series, now=self._clock())
        return await self._renderer.render(points, collection)

    async def _deliver(
        self,
        collection: Collection,
        change: ChangeRecord,
    ) -> ProgressChangeAlert | None:
        series = await self._fetch_series(collection)

        revenue: LatestRevenue | None = None
        if collection.is_time_boxed:
            revenue = latest_revenue(collection, series)
            required = revenue_gate(collection, revenue, change.threshold, now=self._clock())
            if change.delta < required:
                logger.info(
                    "%s: move %.2f below revenue-adjusted delta %.2f",
                    collection.name,
                    change.delta,
                    required,
                )
                return None

        image: bytes | None = None
        if self._renderer is not None:
            try:
                image = await self._render(collection, change.previous, series)
            except Exception:
                logger.exception("Chart rendering failed for %s", collection.name)
                return None
            if image is None:
                logger.error("Chart renderer returned no image for %s", collection.name)
                return None

        alert = ProgressChangeAlert(collection=collection, change=change, latest_revenue=revenue)
        result = await self._fanout.send_progress_change(alert, image)
        self._last_notified[(change.collection_id, change.partition)] = collection.percent
        logger.info(
            "Alert sent for %s: %.2f%% -> %.2f%% (delivered=%s)",
            collection.name,
            change.previous,
            change.current,
            result.delivered,
        )
        return alert

    async def _check_privileged(self, collection: Collection, change: ChangeRecord) -> bool:
        """Privileged-channel gate and delivery. Returns True when sent."""
        if not self._privileged_enabled:
            return False

        jump = (
            _round_half_up(change.signed_delta) >= policy.PRIVILEGED_JUMP
            and collection.percent >= policy.PRIVILEGED_JUMP_LEVEL
        )
        flagged = (
            collection.id in self._privileged_ids
            and change.delta >= policy.resolve_privileged_delta(collection)
        )
        if not (jump or flagged):
            return False

        last = self._privileged_notified.get(collection.id)
        floor = policy.NOISE_FLOOR
        if last is not None and policy.absolute_delta(last, collection.percent) < floor:
            return False
        if policy.below_completion(collection, change.previous):
            return False

        logger.info("Privileged alert for %s, change %.2f", collection.name, change.delta)
        series = await self._fetch_series(collection)
        image: bytes | None = None
        try:
            image = await self._render(collection, change.previous, series)
        except Exception:
            logger.exception("Chart rendering failed for privileged %s", collection.name)

        alert = ProgressChangeAlert(
            collection=collection,
            change=change,
            latest_revenue=latest_revenue(collection, series),
        )
        await self._fanout.send_privileged_progress_change(alert, image)
        self._privileged_notified[collection.id] = collection.percent
        return True
