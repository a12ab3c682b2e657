"""Top-level monitor: wires the components and drives the polling loops.

Three loops run independently and never overlap themselves; each is re-armed
only after its previous run completed:

- main cycle (short interval): fetch every partition, store, route launch
  countdowns to the scheduler, detect changes, sweep finishing time-boxed
  collections; discovery is seeded from the first non-empty snapshot;
- discovery cycle (long interval, first run one interval after start):
  probe the ID space for new collections;
- reward digest (daily at a fixed local hour).

``stop()`` only stops re-arming; work already in flight finishes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from Collection_Watch.config import Settings
from Collection_Watch.models.collection import Collection
from Collection_Watch.models.enums import DiscoveryPhase, PartitionType
from Collection_Watch.models.status import FanoutResult, MonitorStatus
from Collection_Watch.monitor.detector import ChangeDetector
from Collection_Watch.monitor.discovery import DiscoveryScanner
from Collection_Watch.monitor.prices import PriceDropMonitor
from Collection_Watch.monitor.rewards import RewardMonitor, seconds_until_next_run
from Collection_Watch.monitor.scheduler import DeadlineScheduler
from Collection_Watch.monitor.store import CollectionStore
from Collection_Watch.notify.base import NotificationTransport
from Collection_Watch.notify.fanout import NotificationFanout
from Collection_Watch.notify.telegram import TelegramTransport
from Collection_Watch.notify.yoai import YoAITransport
from Collection_Watch.services.charts import ChartRenderer
from Collection_Watch.services.dispatch import DispatchQueue
from Collection_Watch.services.marketplace import MarketplaceClient
from Collection_Watch.utils.exceptions import MarketplaceError

logger = logging.getLogger(__name__)

# Fixed fetch order: every partition is stored before detection starts
PARTITION_ORDER: tuple[PartitionType, ...] = (
    PartitionType.REGULAR,
    PartitionType.PARTNER,
    PartitionType.TIME_BOXED,
)


def build_transports(settings: Settings, dispatch: DispatchQueue) -> list[NotificationTransport]:
    """Transports enabled by *settings*: Telegram always, YoAI when configured."""
    transports: list[NotificationTransport] = [
        TelegramTransport(
            settings.telegram_token,
            settings.telegram_channel_id,
            dispatch,
            privileged_token=settings.privileged_token,
            privileged_channel_id=settings.privileged_channel_id,
            timezone=settings.display_timezone,
        )
    ]
    if settings.yo_token and settings.yo_channel_id:
        transports.append(
            YoAITransport(
                settings.yo_token,
                settings.yo_channel_id,
                dispatch,
                timezone=settings.display_timezone,
            )
        )
    return transports


class CollectionMonitor:
    """Owns one instance of every component and the loops that drive them.

    Usage::

        monitor = CollectionMonitor.from_settings(load_settings())
        try:
            await monitor.run()
        finally:
            await monitor.aclose()
    """

    def __init__(
        self,
        settings: Settings,
        marketplace: MarketplaceClient,
        fanout: NotificationFanout,
        *,
        store: CollectionStore | None = None,
        scheduler: DeadlineScheduler | None = None,
        detector: ChangeDetector | None = None,
        scanner: DiscoveryScanner | None = None,
        rewards: RewardMonitor | None = None,
        prices: PriceDropMonitor | None = None,
        renderer: ChartRenderer | None = None,
        resources: list[Any] | None = None,
    ) -> None:
        self._settings = settings
        self._marketplace = marketplace
        self._fanout = fanout
        self._store = store or CollectionStore()
        self._scheduler = scheduler or DeadlineScheduler(fanout)
        self._detector = detector or ChangeDetector(
            marketplace,
            fanout,
            renderer=renderer,
            privileged_ids=settings.privileged_collection_ids,
            privileged_enabled=settings.privileged_enabled and settings.privileged_configured,
        )
        self._scanner = scanner or DiscoveryScanner(
            marketplace,
            self._scheduler,
            missed_ids=settings.missed_ids,
            missed_scheduled_ids=settings.missed_scheduled_ids,
        )
        self._rewards = rewards or RewardMonitor(fanout)
        self._prices = prices or PriceDropMonitor(self._store, fanout)
        self._resources = resources or []

        self._scanner.set_new_collection_callback(self.handle_new_collection)
        self._stop = asyncio.Event()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        renderer: ChartRenderer | None = None,
    ) -> CollectionMonitor:
        """Construct every component from environment-derived settings."""
        marketplace = MarketplaceClient(settings.base_url, public_url=settings.public_url)
        dispatch = DispatchQueue()
        transports = build_transports(settings, dispatch)
        return cls(
            settings,
            marketplace,
            NotificationFanout(transports),
            renderer=renderer,
            resources=[marketplace, *transports],
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def store(self) -> CollectionStore:
        return self._store

    @property
    def scanner(self) -> DiscoveryScanner:
        return self._scanner

    @property
    def scheduler(self) -> DeadlineScheduler:
        return self._scheduler

    @property
    def prices(self) -> PriceDropMonitor:
        return self._prices

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def status(self) -> MonitorStatus:
        return MonitorStatus(
            store=self._store.stats(),
            discovery=self._scanner.status(),
            scheduled_alerts=self._scheduler.pending_count,
        )

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    async def handle_new_collection(self, collection: Collection) -> FanoutResult:
        logger.info("Handling new collection: %s (ID: %d)", collection.name, collection.id)
        return await self._fanout.send_new_collection(collection)

    async def run_main_cycle(self) -> int:
        """One main cycle. Returns the number of progress alerts sent."""
        logger.info("Running main monitoring cycle")
        fetched: dict[PartitionType, list[Collection]] = {}
        for partition in PARTITION_ORDER:
            fetched[partition] = await self._marketplace.fetch_collections(partition)
            self._store.ingest(partition, fetched[partition])

        everything = [c for partition in PARTITION_ORDER for c in fetched[partition]]
        if self._scanner.phase == DiscoveryPhase.UNINITIALIZED:
            if everything:
                await self._scanner.initialize(everything)
            else:
                logger.warning("Empty snapshot, discovery initialization postponed")

        for collection in everything:
            if collection.live_date:
                await self._scheduler.handle(collection)

        sent = 0
        for partition in PARTITION_ORDER:
            for collection in fetched[partition]:
                try:
                    alert = await self._detector.process_collection(collection, partition)
                except MarketplaceError as exc:
                    logger.error("Change check failed for %s: %s", collection.name, exc)
                    continue
                if alert is not None:
                    sent += 1

        await self._detector.check_finishing(
            fetched[PartitionType.PARTNER] + fetched[PartitionType.TIME_BOXED]
        )
        logger.info("Main monitoring cycle complete: %d alerts", sent)
        return sent

    async def run_discovery_cycle(self) -> list[Collection]:
        logger.info("Running new collection monitoring")
        return await self._scanner.check_for_new_collections()

    async def run_reward_digest(self) -> int:
        return await self._rewards.check_upcoming_rewards(self._store.all_collections())

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Run every loop until ``stop()``; pending timers are then cancelled."""
        logger.info(
            "Starting collection monitoring: main every %.0fs, discovery every %.0fs",
            self._settings.main_interval_seconds,
            self._settings.discovery_interval_seconds,
        )
        try:
            await asyncio.gather(
                self._loop(
                    "main",
                    self.run_main_cycle,
                    lambda: self._settings.main_interval_seconds,
                ),
                self._loop(
                    "discovery",
                    self.run_discovery_cycle,
                    lambda: self._settings.discovery_interval_seconds,
                    first_delay=self._settings.discovery_interval_seconds,
                ),
                self._loop(
                    "rewards",
                    self.run_reward_digest,
                    self._seconds_until_digest,
                    first_delay=self._seconds_until_digest(),
                ),
            )
        finally:
            cancelled = self._scheduler.cancel_all()
            logger.info("All collection monitoring stopped (%d timers cancelled)", cancelled)

    def stop(self) -> None:
        """Stop re-arming the loops."""
        self._stop.set()

    async def aclose(self) -> None:
        for resource in self._resources:
            close = getattr(resource, "aclose", None)
            if close is not None:
                await close()

    def _seconds_until_digest(self) -> float:
        return seconds_until_next_run(
            self._settings.reward_digest_hour, self._settings.display_timezone
        )

    async def _loop(
        self,
        name: str,
        body: Callable[[], Awaitable[object]],
        interval: Callable[[], float],
        *,
        first_delay: float = 0.0,
    ) -> None:
        if first_delay > 0 and await self._wait(first_delay):
            return
        while not self._stop.is_set():
            try:
                await body()
            except Exception:
                logger.exception("Error in %s monitoring", name)
            if await self._wait(interval()):
                return

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to *seconds*; True when stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True
