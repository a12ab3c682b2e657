"""Tests for the upcoming-rewards digest.

Covers:
- select_upcoming() window (0, 2] days, split by kind, sorted soonest first
- seconds_until_next_run() wall-clock arithmetic in the display timezone
- RewardMonitor sends one digest per non-empty group
"""

from __future__ import annotations

import datetime
from unittest.mock import MagicMock

import pytest

from Collection_Watch.models import Collection
from Collection_Watch.monitor.rewards import RewardMonitor, seconds_until_next_run, select_upcoming

SECONDS_PER_DAY = 86_400


def _paying_in(collection: Collection, days: float, collection_id: int) -> Collection:
    return collection.model_copy(
        update={
            "id": collection_id,
            "slug": f"c-{collection_id}",
            "reward_date": days * SECONDS_PER_DAY,
        }
    )


class TestSelectUpcoming:
    """Tests for the two-day selection."""

    def test_window_and_split(
        self, regular_collection: Collection, time_boxed_collection: Collection
    ) -> None:
        """Only (0, 2] days qualify, split into standard and time-boxed."""
        collections = [
            _paying_in(regular_collection, 1.5, 1),
            _paying_in(regular_collection, 0.5, 2),
            _paying_in(regular_collection, 2.5, 3),
            _paying_in(regular_collection, 0, 4),
            _paying_in(time_boxed_collection, 2, 5),
        ]
        standard, time_boxed = select_upcoming(collections)

        assert [c.id for c in standard] == [2, 1]
        assert [c.id for c in time_boxed] == [5]

    def test_nothing_upcoming(self, regular_collection: Collection) -> None:
        """Collections far from payout produce two empty lists."""
        assert select_upcoming([_paying_in(regular_collection, 10, 1)]) == ([], [])


class TestSecondsUntilNextRun:
    """Tests for the daily schedule arithmetic."""

    def test_later_today(self) -> None:
        """17:00 in Yerevan (UTC+4) is one hour before an 18:00 run."""
        now = datetime.datetime(2026, 10, 19, 13, 0, tzinfo=datetime.UTC)
        assert seconds_until_next_run(18, "Asia/Yerevan", now=now) == 3600

    def test_rolls_over_to_tomorrow(self) -> None:
        """18:30 local waits until 18:00 the next day."""
        now = datetime.datetime(2026, 10, 19, 14, 30, tzinfo=datetime.UTC)
        assert seconds_until_next_run(18, "Asia/Yerevan", now=now) == 23.5 * 3600

    def test_exactly_on_the_hour(self) -> None:
        """At 18:00 sharp the next run is a full day away."""
        now = datetime.datetime(2026, 10, 19, 14, 0, tzinfo=datetime.UTC)
        assert seconds_until_next_run(18, "Asia/Yerevan", now=now) == 24 * 3600


class TestRewardMonitor:
    """Tests for check_upcoming_rewards()."""

    @pytest.mark.asyncio()
    async def test_sends_each_non_empty_group(
        self,
        mock_fanout: MagicMock,
        regular_collection: Collection,
        time_boxed_collection: Collection,
    ) -> None:
        """Standard and time-boxed digests go out separately."""
        standard = _paying_in(regular_collection, 1, 1)
        boxed = _paying_in(time_boxed_collection, 1, 2)
        count = await RewardMonitor(mock_fanout).check_upcoming_rewards([standard, boxed])

        assert count == 2
        assert mock_fanout.send_upcoming_rewards.await_count == 2
        first, second = mock_fanout.send_upcoming_rewards.await_args_list
        assert first.args[0] == [standard]
        assert first.kwargs == {"time_boxed": False}
        assert second.args[0] == [boxed]
        assert second.kwargs == {"time_boxed": True}

    @pytest.mark.asyncio()
    async def test_nothing_to_send(
        self, mock_fanout: MagicMock, regular_collection: Collection
    ) -> None:
        """With nothing upcoming, no digest is sent."""
        count = await RewardMonitor(mock_fanout).check_upcoming_rewards([regular_collection])
        assert count == 0
        mock_fanout.send_upcoming_rewards.assert_not_awaited()
