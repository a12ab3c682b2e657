"""Tests for DeadlineScheduler: the last-chance timer policy.

Covers:
- Countdown above one day is too early
- Countdown in (600, 86400] schedules a timer 120 s before launch
- A pending timer is never replaced or duplicated
- Countdown in (10, 600] fires immediately
- Countdown at or below 10 s (or missing) is not schedulable
- A fired timer announces a pinned 120 s countdown and clears itself
- A fired ID is never alerted again, whatever countdown is observed later
- cancel() and cancel_all()
"""

from __future__ import annotations

import asyncio
import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from Collection_Watch.models import Collection, ScheduleOutcome
from Collection_Watch.monitor.scheduler import DeadlineScheduler


class BlockingSleep:
    """Records requested delays and blocks until released."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self.release = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await self.release.wait()


def _launching_in(collection: Collection, seconds: float | None) -> Collection:
    return collection.model_copy(update={"live_date": seconds})


class TestHandle:
    """Tests for the scheduling decision."""

    @pytest.mark.asyncio()
    async def test_schedules_ahead_of_launch(
        self,
        mock_fanout: MagicMock,
        regular_collection: Collection,
        fixed_now: datetime.datetime,
    ) -> None:
        """700 s out: a timer fires after 580 s, and only one is created."""
        sleep = BlockingSleep()
        scheduler = DeadlineScheduler(mock_fanout, clock=lambda: fixed_now, sleep=sleep)
        collection = _launching_in(regular_collection, 700)

        assert await scheduler.handle(collection) == ScheduleOutcome.SCHEDULED
        assert await scheduler.handle(collection) == ScheduleOutcome.ALREADY_SCHEDULED
        await asyncio.sleep(0)

        scheduled = scheduler.get(501)
        assert scheduled is not None
        assert scheduled.delay_seconds == 580
        assert scheduled.fire_at == fixed_now + datetime.timedelta(seconds=580)
        assert scheduler.pending_count == 1
        assert sleep.delays == [580]
        mock_fanout.send_last_chance.assert_not_awaited()

        assert scheduler.cancel_all() == 1

    @pytest.mark.asyncio()
    async def test_pending_timer_is_not_rescheduled(
        self, mock_fanout: MagicMock, regular_collection: Collection
    ) -> None:
        """A later, different countdown does not move the pending timer."""
        scheduler = DeadlineScheduler(mock_fanout, sleep=BlockingSleep())
        await scheduler.handle(_launching_in(regular_collection, 7200))
        outcome = await scheduler.handle(_launching_in(regular_collection, 3600))

        assert outcome == ScheduleOutcome.ALREADY_SCHEDULED
        scheduled = scheduler.get(501)
        assert scheduled is not None
        assert scheduled.delay_seconds == 7080
        scheduler.cancel_all()

    @pytest.mark.asyncio()
    async def test_fires_immediately_inside_ten_minutes(
        self, mock_fanout: MagicMock, regular_collection: Collection
    ) -> None:
        """300 s out: the alert goes out now with the observed countdown."""
        scheduler = DeadlineScheduler(mock_fanout, sleep=BlockingSleep())
        collection = _launching_in(regular_collection, 300)

        assert await scheduler.handle(collection) == ScheduleOutcome.FIRED
        mock_fanout.send_last_chance.assert_awaited_once_with(collection)
        assert not scheduler.is_scheduled(501)

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        ("countdown", "expected"),
        [
            (90_000, ScheduleOutcome.TOO_EARLY),
            (10, ScheduleOutcome.NOT_SCHEDULABLE),
            (0, ScheduleOutcome.NOT_SCHEDULABLE),
            (None, ScheduleOutcome.NOT_SCHEDULABLE),
        ],
    )
    async def test_outside_scheduling_window(
        self,
        mock_fanout: MagicMock,
        regular_collection: Collection,
        countdown: float | None,
        expected: ScheduleOutcome,
    ) -> None:
        """Too early or too late: nothing is scheduled or sent."""
        scheduler = DeadlineScheduler(mock_fanout)
        assert await scheduler.handle(_launching_in(regular_collection, countdown)) == expected
        assert scheduler.pending_count == 0
        mock_fanout.send_last_chance.assert_not_awaited()


class TestFiring:
    """Tests for the timer firing path."""

    @pytest.mark.asyncio()
    async def test_fired_timer_pins_countdown(
        self, mock_fanout: MagicMock, regular_collection: Collection
    ) -> None:
        """The fired alert reports 120 s to launch and clears the entry."""
        scheduler = DeadlineScheduler(mock_fanout, sleep=AsyncMock())
        await scheduler.handle(_launching_in(regular_collection, 3600))
        scheduled = scheduler.get(501)
        assert scheduled is not None

        await scheduled.task

        mock_fanout.send_last_chance.assert_awaited_once()
        sent = mock_fanout.send_last_chance.await_args.args[0]
        assert sent.live_date == 120
        assert sent.id == 501
        assert scheduler.pending_count == 0

    @pytest.mark.asyncio()
    async def test_fired_timer_is_not_rescheduled(
        self, mock_fanout: MagicMock, regular_collection: Collection
    ) -> None:
        """Later listings of the same launch neither reschedule nor resend."""
        scheduler = DeadlineScheduler(mock_fanout, sleep=AsyncMock())
        await scheduler.handle(_launching_in(regular_collection, 3600))
        scheduled = scheduler.get(501)
        assert scheduled is not None
        await scheduled.task

        assert scheduler.has_fired(501)
        for countdown in (3000, 400):
            outcome = await scheduler.handle(_launching_in(regular_collection, countdown))
            assert outcome == ScheduleOutcome.ALREADY_FIRED
        assert scheduler.pending_count == 0
        mock_fanout.send_last_chance.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_immediate_fire_happens_once(
        self, mock_fanout: MagicMock, regular_collection: Collection
    ) -> None:
        """Two cycles inside the ten-minute window send a single alert."""
        scheduler = DeadlineScheduler(mock_fanout, sleep=AsyncMock())

        first = await scheduler.handle(_launching_in(regular_collection, 500))
        second = await scheduler.handle(_launching_in(regular_collection, 380))

        assert first == ScheduleOutcome.FIRED
        assert second == ScheduleOutcome.ALREADY_FIRED
        mock_fanout.send_last_chance.assert_awaited_once()


class TestCancel:
    """Tests for cancel() and cancel_all()."""

    @pytest.mark.asyncio()
    async def test_cancel_pending_timer(
        self, mock_fanout: MagicMock, regular_collection: Collection
    ) -> None:
        """Cancelling stops the timer from ever sending."""
        scheduler = DeadlineScheduler(mock_fanout, sleep=BlockingSleep())
        await scheduler.handle(_launching_in(regular_collection, 3600))
        scheduled = scheduler.get(501)
        assert scheduled is not None

        assert scheduler.cancel(501)
        assert not scheduler.cancel(501)
        await asyncio.sleep(0)
        assert scheduled.task.cancelled()
        mock_fanout.send_last_chance.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_cancel_all(
        self,
        mock_fanout: MagicMock,
        regular_collection: Collection,
        time_boxed_collection: Collection,
    ) -> None:
        """cancel_all() reports how many timers it dropped."""
        scheduler = DeadlineScheduler(mock_fanout, sleep=BlockingSleep())
        await scheduler.handle(_launching_in(regular_collection, 3600))
        await scheduler.handle(_launching_in(time_boxed_collection, 3600))

        assert scheduler.cancel_all() == 2
        assert scheduler.pending_count == 0
        assert scheduler.cancel_all() == 0
