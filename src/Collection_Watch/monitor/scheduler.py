"""One-shot "last chance" alerts ahead of a collection's public launch.

Given the activation countdown ``T`` (seconds) observed on a collection:

- ``T > 86400``: too early, nothing happens yet;
- ``600 < T <= 86400``: a timer fires 120 s before launch, unless one is
  already pending for the same ID (a pending timer is never replaced);
- ``10 < T <= 600``: the alert goes out immediately;
- ``T <= 10`` or no countdown: not schedulable.

Each ID moves through ``no schedule -> scheduled -> fired (removed)``. A fired
ID is remembered, so later observations of the same countdown, from listings
or discovery, never alert it twice.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from Collection_Watch.models.collection import Collection
from Collection_Watch.models.enums import ScheduleOutcome
from Collection_Watch.notify.fanout import NotificationFanout

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

LEAD_SECONDS: int = 120
MAX_SCHEDULE_SECONDS: int = 86_400
IMMEDIATE_FIRE_SECONDS: int = 600
MIN_SCHEDULABLE_SECONDS: int = 10


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


@dataclass
class ScheduledAlert:
    """A pending last-chance timer and the snapshot it will announce."""

    collection: Collection
    task: asyncio.Task[None]
    fire_at: datetime.datetime
    delay_seconds: float


class DeadlineScheduler:
    """Owns the pending last-chance timers, one per collection ID.

    Usage::

        scheduler = DeadlineScheduler(fanout)
        outcome = await scheduler.handle(collection)
        ...
        scheduler.cancel_all()  # on shutdown
    """

    def __init__(
        self,
        fanout: NotificationFanout,
        *,
        clock: Callable[[], datetime.datetime] = _utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._fanout = fanout
        self._clock = clock
        self._sleep = sleep
        self._scheduled: dict[int, ScheduledAlert] = {}
        self._fired: set[int] = set()

    @property
    def pending_count(self) -> int:
        return len(self._scheduled)

    def get(self, collection_id: int) -> ScheduledAlert | None:
        return self._scheduled.get(collection_id)

    def is_scheduled(self, collection_id: int) -> bool:
        return collection_id in self._scheduled

    def has_fired(self, collection_id: int) -> bool:
        return collection_id in self._fired

    async def handle(self, collection: Collection) -> ScheduleOutcome:
        """Apply the scheduling policy to one observed countdown."""
        countdown = collection.live_date
        if countdown is None or countdown <= MIN_SCHEDULABLE_SECONDS:
            return ScheduleOutcome.NOT_SCHEDULABLE

        if collection.id in self._fired:
            return ScheduleOutcome.ALREADY_FIRED

        if countdown > MAX_SCHEDULE_SECONDS:
            logger.debug(
                "%s goes live in %.0fs, not scheduling an alert yet",
                collection.name,
                countdown,
            )
            return ScheduleOutcome.TOO_EARLY

        if countdown > IMMEDIATE_FIRE_SECONDS:
            return self._schedule(collection, countdown)

        logger.info(
            "%s goes live in %.0fs, sending last chance alert now",
            collection.name,
            countdown,
        )
        self._fired.add(collection.id)
        await self._fanout.send_last_chance(collection)
        return ScheduleOutcome.FIRED

    def cancel(self, collection_id: int) -> bool:
        """Drop the pending timer for *collection_id*. True if one existed."""
        scheduled = self._scheduled.pop(collection_id, None)
        if scheduled is None:
            return False
        scheduled.task.cancel()
        logger.info("Cancelled last chance alert for %s", scheduled.collection.name)
        return True

    def cancel_all(self) -> int:
        """Drop every pending timer; returns how many were cancelled."""
        ids = list(self._scheduled)
        for collection_id in ids:
            self.cancel(collection_id)
        return len(ids)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _schedule(self, collection: Collection, countdown: float) -> ScheduleOutcome:
        if collection.id in self._scheduled:
            logger.info("%s already has a scheduled alert", collection.name)
            return ScheduleOutcome.ALREADY_SCHEDULED

        delay = max(0.0, countdown - LEAD_SECONDS)
        task = asyncio.create_task(self._fire_later(collection, delay))
        self._scheduled[collection.id] = ScheduledAlert(
            collection=collection,
            task=task,
            fire_at=self._clock() + datetime.timedelta(seconds=delay),
            delay_seconds=delay,
        )
        logger.info(
            "Scheduled last chance alert for %s in %.0fs (%d pending)",
            collection.name,
            delay,
            len(self._scheduled),
        )
        return ScheduleOutcome.SCHEDULED

    async def _fire_later(self, collection: Collection, delay: float) -> None:
        await self._sleep(delay)
        # Settled before sending; the ID is never alerted again
        self._scheduled.pop(collection.id, None)
        self._fired.add(collection.id)
        logger.info("Sending last chance alert for %s (ID: %d)", collection.name, collection.id)
        pinned = collection.model_copy(update={"live_date": LEAD_SECONDS})
        await self._fanout.send_last_chance(pinned)
