"""Daily digest of collections paying out within the next two days."""

from __future__ import annotations

import datetime
import logging
from zoneinfo import ZoneInfo

from Collection_Watch.models.collection import Collection
from Collection_Watch.notify.fanout import NotificationFanout

logger = logging.getLogger(__name__)

UPCOMING_REWARD_DAYS: float = 2.0


def select_upcoming(collections: list[Collection]) -> tuple[list[Collection], list[Collection]]:
    """Split collections paying out in (0, 2] days into (standard, time-boxed).

    Each list is sorted by the reward countdown, soonest first.
    """
    upcoming = [c for c in collections if 0 < c.days_until_reward <= UPCOMING_REWARD_DAYS]
    upcoming.sort(key=lambda c: c.reward_date or 0.0)
    standard = [c for c in upcoming if not c.is_time_boxed]
    time_boxed = [c for c in upcoming if c.is_time_boxed]
    return standard, time_boxed


def seconds_until_next_run(
    hour: int,
    timezone: str,
    *,
    now: datetime.datetime | None = None,
) -> float:
    """Seconds from *now* until the next ``hour:00`` wall-clock time in *timezone*."""
    zone = ZoneInfo(timezone)
    local_now = (now or datetime.datetime.now(datetime.UTC)).astimezone(zone)
    target = local_now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= local_now:
        target += datetime.timedelta(days=1)
    return (target - local_now).total_seconds()


class RewardMonitor:
    """Sends the upcoming-rewards digests.

    Usage::

        rewards = RewardMonitor(fanout)
        await rewards.check_upcoming_rewards(store.all_collections())
    """

    def __init__(self, fanout: NotificationFanout) -> None:
        self._fanout = fanout

    async def check_upcoming_rewards(self, collections: list[Collection]) -> int:
        """Send one digest per non-empty group. Returns how many were listed."""
        standard, time_boxed = select_upcoming(collections)

        if standard:
            await self._fanout.send_upcoming_rewards(standard, time_boxed=False)
        if time_boxed:
            await self._fanout.send_upcoming_rewards(time_boxed, time_boxed=True)

        logger.info(
            "Upcoming rewards: %d standard, %d time-boxed",
            len(standard),
            len(time_boxed),
        )
        return len(standard) + len(time_boxed)
