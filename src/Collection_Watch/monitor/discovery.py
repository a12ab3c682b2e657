"""Discovery of new collections by probing the integer ID space.

The listing endpoints do not reliably show collections before launch, so the
scanner probes IDs one at a time around the highest ID it knows of:

- a one-off initialization sweep seeds ``highest_known_id`` from the first
  snapshot, probes forward and backward, and backfills a small externally
  supplied list of "missed" IDs;
- every later scan probes a short forward window (advancing the boundary as
  it finds collections) and a backward window (skipping IDs already
  resolved), announcing each existing collection that was never announced.

Scan state (initialized, notified, missed) only ever grows, except that
missed IDs are evicted once handled.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable

from Collection_Watch.models.collection import Collection, ProbeResult
from Collection_Watch.models.enums import DiscoveryPhase
from Collection_Watch.models.status import DiscoveryStatus
from Collection_Watch.monitor.scheduler import DeadlineScheduler
from Collection_Watch.services.marketplace import MarketplaceClient
from Collection_Watch.utils.exceptions import MarketplaceError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_FORWARD_WINDOW: int = 15
DEFAULT_BACKWARD_WINDOW: int = 25

NewCollectionCallback = Callable[[Collection], Awaitable[object]]


class DiscoveryScanner:
    """Finds collections the listings missed or that do not exist yet.

    Usage::

        scanner = DiscoveryScanner(marketplace, scheduler, missed_ids={663, 662})
        scanner.set_new_collection_callback(monitor.handle_new_collection)
        await scanner.initialize(first_snapshot)
        new = await scanner.check_for_new_collections()
    """

    def __init__(
        self,
        marketplace: MarketplaceClient,
        scheduler: DeadlineScheduler,
        *,
        forward_window: int = DEFAULT_FORWARD_WINDOW,
        backward_window: int = DEFAULT_BACKWARD_WINDOW,
        missed_ids: Iterable[int] = (),
        missed_scheduled_ids: Iterable[int] = (),
    ) -> None:
        self._marketplace = marketplace
        self._scheduler = scheduler
        self._forward_window = forward_window
        self._backward_window = backward_window

        self._phase = DiscoveryPhase.UNINITIALIZED
        self._highest_known_id = 0
        self._initialized: set[int] = set()
        self._notified: set[int] = set()
        self._missed: set[int] = set(missed_ids)
        self._missed_scheduled: set[int] = set(missed_scheduled_ids)
        self._callback: NewCollectionCallback | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def phase(self) -> DiscoveryPhase:
        return self._phase

    @property
    def is_ready(self) -> bool:
        return self._phase == DiscoveryPhase.READY

    @property
    def highest_known_id(self) -> int:
        return self._highest_known_id

    @property
    def missed_ids(self) -> frozenset[int]:
        return frozenset(self._missed)

    @property
    def missed_scheduled_ids(self) -> frozenset[int]:
        return frozenset(self._missed_scheduled)

    def is_notified(self, collection_id: int) -> bool:
        return collection_id in self._notified

    def is_initialized(self, collection_id: int) -> bool:
        return collection_id in self._initialized

    def status(self) -> DiscoveryStatus:
        return DiscoveryStatus(
            phase=self._phase,
            highest_known_id=self._highest_known_id,
            notified_count=len(self._notified),
            initialized_count=len(self._initialized),
        )

    def set_new_collection_callback(self, callback: NewCollectionCallback | None) -> None:
        """Register the coroutine called with each newly found collection.

        Anything that is not callable is ignored.
        """
        if callable(callback):
            self._callback = callback

    # ------------------------------------------------------------------
    # Initialization sweep
    # ------------------------------------------------------------------

    async def initialize(self, collections: list[Collection]) -> int:
        """Run the one-off sweep around the first snapshot's highest ID.

        An empty snapshot seeds nothing: the scanner stays UNINITIALIZED so a
        later snapshot can seed it. Otherwise it always ends in the READY
        phase, even when a scan fails.

        Returns:
            The highest known ID after the sweep.
        """
        if not collections:
            logger.warning("Cannot initialize discovery from an empty snapshot")
            return self._highest_known_id

        self._phase = DiscoveryPhase.INITIALIZING
        try:
            self._highest_known_id = max(c.id for c in collections)
            self._initialized.update(c.id for c in collections)

            logger.info(
                "Initializing discovery: highest ID %d, forward to %d, backward to %d",
                self._highest_known_id,
                self._highest_known_id + self._forward_window,
                self._highest_known_id - self._backward_window,
            )
            await self._initial_forward_scan()
            await self._initial_backward_scan()
        except MarketplaceError:
            logger.exception("Discovery initialization scan failed")
        finally:
            self._phase = DiscoveryPhase.READY

        logger.info("Discovery initialized. Highest collection ID: %d", self._highest_known_id)
        return self._highest_known_id

    async def _initial_forward_scan(self) -> None:
        start = self._highest_known_id + 1
        for collection_id in range(start, start + self._forward_window):
            if collection_id in self._initialized:
                continue
            probe = await self._probe(collection_id)
            if probe is None:
                continue
            if await self._backfill(probe):
                self._initialized.add(collection_id)
                self._highest_known_id = max(self._highest_known_id, collection_id)
        logger.info("Initial forward scan complete. Highest ID: %d", self._highest_known_id)

    async def _initial_backward_scan(self) -> None:
        unreleased = 0
        for collection_id in self._backward_range():
            if collection_id in self._initialized:
                continue
            probe = await self._probe(collection_id)
            if probe is None:
                unreleased += 1
                continue
            if await self._backfill(probe):
                self._initialized.add(collection_id)
        logger.info("Initial backward scan complete. %d IDs not released yet", unreleased)

    async def _backfill(self, probe: ProbeResult) -> bool:
        """Handle an existing ID during the sweep. False when it must be retried."""
        collection_id = probe.collection_id
        if collection_id in self._missed:
            logger.info("Found missed collection ID %d, announcing it", collection_id)
            return await self._announce(probe) is not None

        if collection_id in self._missed_scheduled:
            detail = await self._fetch_detail(probe)
            if detail is None:
                return False
            if detail.live_date:
                await self._scheduler.handle(detail)
            self._missed_scheduled.discard(collection_id)
        return True

    # ------------------------------------------------------------------
    # Recurring scan
    # ------------------------------------------------------------------

    async def check_for_new_collections(self) -> list[Collection]:
        """Probe both windows and announce every newly found collection.

        Returns:
            The detailed records of collections announced in this scan.
        """
        if not self.is_ready:
            logger.info("Discovery not yet initialized, skipping check")
            return []

        found: list[Collection] = []
        try:
            found.extend(await self._forward_scan())
            found.extend(await self._backward_scan())
        except MarketplaceError:
            logger.exception("Error checking for new collections")

        logger.info("New collection check complete: %d found", len(found))
        return found

    async def _forward_scan(self) -> list[Collection]:
        found: list[Collection] = []
        start = self._highest_known_id + 1
        for collection_id in range(start, start + self._forward_window):
            probe = await self._probe(collection_id)
            if probe is None:
                continue

            if collection_id in self._notified or collection_id in self._initialized:
                logger.debug("Collection ID %d already known", collection_id)
                self._initialized.add(collection_id)
                self._highest_known_id = max(self._highest_known_id, collection_id)
                continue

            logger.info("New collection %d found", collection_id)
            detail = await self._announce(probe)
            if detail is None:
                # Boundary stays put so the backward scan retries this ID
                continue
            found.append(detail)
            self._initialized.add(collection_id)
            self._highest_known_id = max(self._highest_known_id, collection_id)

        if not found:
            logger.info("No new collections after ID %d", self._highest_known_id)
        return found

    async def _backward_scan(self) -> list[Collection]:
        found: list[Collection] = []
        for collection_id in self._backward_range():
            if collection_id in self._initialized:
                continue
            probe = await self._probe(collection_id)
            if probe is None:
                continue

            if collection_id not in self._notified:
                logger.info("Previously unreleased collection %d is now available", collection_id)
                detail = await self._announce(probe)
                if detail is None:
                    continue
                found.append(detail)
            self._initialized.add(collection_id)
        return found

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _backward_range(self) -> range:
        """IDs from ``highest - 1`` down to ``highest - backward_window``."""
        top = self._highest_known_id - 1
        bottom = max(self._highest_known_id - self._backward_window, 1)
        return range(top, bottom - 1, -1)

    async def _probe(self, collection_id: int) -> ProbeResult | None:
        try:
            return await self._marketplace.probe_collection(collection_id)
        except MarketplaceError as exc:
            logger.error("Error checking collection %d: %s", collection_id, exc)
            return None

    async def _fetch_detail(self, probe: ProbeResult) -> Collection | None:
        if not probe.slug:
            logger.warning("Collection ID %d has no slug to resolve", probe.collection_id)
            return None
        try:
            return await self._marketplace.fetch_detail(probe.slug)
        except MarketplaceError as exc:
            logger.error("Error fetching detail for %s: %s", probe.slug, exc)
            return None

    async def _announce(self, probe: ProbeResult) -> Collection | None:
        """Resolve, hand to the callback, route to the scheduler, mark notified."""
        detail = await self._fetch_detail(probe)
        if detail is None:
            return None

        if self._callback is not None:
            try:
                result = self._callback(detail)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("New collection callback failed for %d", detail.id)

        if detail.live_date:
            await self._scheduler.handle(detail)

        self._notified.add(probe.collection_id)
        self._missed.discard(probe.collection_id)
        return detail
