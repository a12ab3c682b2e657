"""Tests for the delta policy tables and comparison helpers.

Covers:
- Standard collections use the flat threshold
- Time-boxed step table boundaries (strictly greater than)
- Privileged step table for any collection kind
- Noise floor is strict and immune to float subtraction noise
- Completion boundary only applies to time-boxed collections
"""

from __future__ import annotations

import pytest

from Collection_Watch.models import Collection
from Collection_Watch.monitor import policy

SECONDS_PER_DAY = 86_400


def _with_days(collection: Collection, days: float) -> Collection:
    return collection.model_copy(update={"reward_date": days * SECONDS_PER_DAY})


class TestResolveDelta:
    """Tests for the public-channel threshold."""

    def test_standard_collection_threshold(self, regular_collection: Collection) -> None:
        """Standard collections always need 0.01."""
        assert policy.resolve_delta(regular_collection) == 0.01
        assert policy.resolve_delta(_with_days(regular_collection, 40)) == 0.01

    @pytest.mark.parametrize(
        ("days", "expected"),
        [
            (28, 35.0),
            (27, 25.0),
            (26, 25.0),
            (23, 18.0),
            (21, 13.0),
            (16, 6.0),
            (12, 5.0),
            (6, 3.0),
            (5, 1.0),
            (0, 1.0),
        ],
    )
    def test_time_boxed_steps(
        self, time_boxed_collection: Collection, days: float, expected: float
    ) -> None:
        """Each step applies when days are strictly greater than its bound."""
        assert policy.resolve_delta(_with_days(time_boxed_collection, days)) == expected


class TestResolvePrivilegedDelta:
    """Tests for the privileged-channel threshold."""

    @pytest.mark.parametrize(
        ("days", "expected"),
        [(28, 20.0), (26, 15.0), (23, 12.0), (21, 9.0), (15, 5.0), (10, 1.0), (2, 1.0)],
    )
    def test_privileged_steps(
        self, regular_collection: Collection, days: float, expected: float
    ) -> None:
        """The privileged table ignores the collection kind."""
        assert policy.resolve_privileged_delta(_with_days(regular_collection, days)) == expected


class TestNoiseFloor:
    """Tests for absolute_delta() and clears_noise_floor()."""

    def test_exact_tenth_does_not_clear(self) -> None:
        """12.25 -> 12.35 is exactly the floor and must not count."""
        delta = policy.absolute_delta(12.25, 12.35)
        assert delta == 0.1
        assert not policy.clears_noise_floor(delta)

    def test_just_above_floor_clears(self) -> None:
        """12.25 -> 12.36 clears the floor."""
        assert policy.clears_noise_floor(policy.absolute_delta(12.25, 12.36))

    def test_delta_is_absolute(self) -> None:
        """Downward moves produce a positive delta."""
        assert policy.absolute_delta(50.0, 40.0) == 10.0


class TestBelowCompletion:
    """Tests for the 100% completion boundary."""

    def test_time_boxed_below_on_both_sides(self, time_boxed_collection: Collection) -> None:
        """Below 100% before and after the move is suppressed."""
        moving = time_boxed_collection.model_copy(update={"percent": 80.0})
        assert policy.below_completion(moving, 60.0)

    def test_time_boxed_crossing_boundary(self, time_boxed_collection: Collection) -> None:
        """Reaching 100% from below is not suppressed."""
        assert not policy.below_completion(time_boxed_collection, 60.0)

    def test_standard_never_below_completion(self, regular_collection: Collection) -> None:
        """The boundary only exists for time-boxed collections."""
        assert not policy.below_completion(regular_collection, 5.0)
