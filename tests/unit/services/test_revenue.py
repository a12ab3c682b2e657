"""Tests for latest_revenue() and revenue_gate().

Covers:
- Standard collections never report revenue
- Sparse or zero-revenue series yield no reading
- require_latest_revenue() raises InsufficientDataError instead
- Gate bands: 5x, 3x, 2x, and plain delta
- Missing data and future reference dates give 0, same-day gives 1
"""

from __future__ import annotations

import datetime

import pytest

from Collection_Watch.models import Collection, LatestRevenue, RevenuePoint
from Collection_Watch.services.revenue import (
    latest_revenue,
    require_latest_revenue,
    revenue_gate,
)
from Collection_Watch.utils.exceptions import InsufficientDataError


def _reading(revenue: float, predicted: float | None) -> LatestRevenue:
    return LatestRevenue(
        revenue=revenue, previous_revenue=revenue, predicted_revenue=predicted, label="Oct - 19"
    )


class TestLatestRevenue:
    """Tests for latest_revenue()."""

    def test_reads_last_point(
        self, time_boxed_collection: Collection, weak_revenue_series: list[RevenuePoint]
    ) -> None:
        reading = latest_revenue(time_boxed_collection, weak_revenue_series)
        assert reading is not None
        assert reading.revenue == 100.0
        assert reading.previous_revenue == 90.0
        assert reading.predicted_revenue == 100.0
        assert reading.label == "Oct - 18"

    def test_standard_collection_has_none(
        self, regular_collection: Collection, weak_revenue_series: list[RevenuePoint]
    ) -> None:
        assert latest_revenue(regular_collection, weak_revenue_series) is None

    @pytest.mark.parametrize("series", [None, [], [RevenuePoint(label="a", revenue=5.0)]])
    def test_too_few_points(
        self, time_boxed_collection: Collection, series: list[RevenuePoint] | None
    ) -> None:
        assert latest_revenue(time_boxed_collection, series) is None

    def test_zero_revenue_is_no_signal(self, time_boxed_collection: Collection) -> None:
        series = [RevenuePoint(label="a", revenue=0.0), RevenuePoint(label="b", revenue=10.0)]
        assert latest_revenue(time_boxed_collection, series) is None


class TestRequireLatestRevenue:
    """Tests for require_latest_revenue()."""

    def test_sparse_series_raises(self, time_boxed_collection: Collection) -> None:
        with pytest.raises(InsufficientDataError, match="Insufficient revenue") as exc_info:
            require_latest_revenue(time_boxed_collection, [RevenuePoint(label="a", revenue=5.0)])
        assert exc_info.value.collection_id == 502
        assert exc_info.value.source == "revenue"

    def test_zero_revenue_raises(self, time_boxed_collection: Collection) -> None:
        series = [RevenuePoint(label="a", revenue=10.0), RevenuePoint(label="b", revenue=0.0)]
        with pytest.raises(InsufficientDataError, match="Missing revenue"):
            require_latest_revenue(time_boxed_collection, series)

    def test_standard_collection_raises(
        self, regular_collection: Collection, weak_revenue_series: list[RevenuePoint]
    ) -> None:
        with pytest.raises(InsufficientDataError):
            require_latest_revenue(regular_collection, weak_revenue_series)

    def test_returns_reading(
        self, time_boxed_collection: Collection, weak_revenue_series: list[RevenuePoint]
    ) -> None:
        reading = require_latest_revenue(time_boxed_collection, weak_revenue_series)
        assert reading.revenue == 100.0


class TestRevenueGate:
    """Tests for revenue_gate(); calc_date is ten days before fixed_now."""

    @pytest.mark.parametrize(
        ("revenue", "predicted", "expected"),
        [
            (100.0, 100.0, 5.0),  # 10 / 10 per day
            (1500.0, 900.0, 3.0),  # 150 actual / 90 predicted per day
            (2500.0, 1200.0, 2.0),  # 250 / 120 per day
            (4000.0, 2000.0, 1.0),  # 400 / 200 per day
        ],
    )
    def test_bands(
        self,
        time_boxed_collection: Collection,
        fixed_now: datetime.datetime,
        revenue: float,
        predicted: float,
        expected: float,
    ) -> None:
        reading = _reading(revenue, predicted)
        gate = revenue_gate(time_boxed_collection, reading, 1.0, now=fixed_now)
        assert gate == pytest.approx(expected)

    def test_both_averages_must_be_weak(
        self, time_boxed_collection: Collection, fixed_now: datetime.datetime
    ) -> None:
        """Weak predicted revenue alone does not raise the bar."""
        gate = revenue_gate(time_boxed_collection, _reading(4000.0, 100.0), 1.0, now=fixed_now)
        assert gate == 1.0

    def test_missing_reading(
        self, time_boxed_collection: Collection, fixed_now: datetime.datetime
    ) -> None:
        assert revenue_gate(time_boxed_collection, None, 1.0, now=fixed_now) == 0.0

    def test_missing_predicted(
        self, time_boxed_collection: Collection, fixed_now: datetime.datetime
    ) -> None:
        reading = _reading(100.0, None)
        assert revenue_gate(time_boxed_collection, reading, 1.0, now=fixed_now) == 0.0

    def test_missing_calc_date(
        self, time_boxed_collection: Collection, fixed_now: datetime.datetime
    ) -> None:
        collection = time_boxed_collection.model_copy(update={"calc_date": None})
        assert revenue_gate(collection, _reading(100.0, 100.0), 1.0, now=fixed_now) == 0.0

    def test_unparseable_calc_date(
        self, time_boxed_collection: Collection, fixed_now: datetime.datetime
    ) -> None:
        collection = time_boxed_collection.model_copy(update={"calc_date": "yesterday"})
        assert revenue_gate(collection, _reading(100.0, 100.0), 1.0, now=fixed_now) == 0.0

    def test_future_calc_date(
        self, time_boxed_collection: Collection, fixed_now: datetime.datetime
    ) -> None:
        collection = time_boxed_collection.model_copy(update={"calc_date": "2026-10-25T00:00:00Z"})
        assert revenue_gate(collection, _reading(100.0, 100.0), 1.0, now=fixed_now) == 0.0

    def test_same_day(
        self, time_boxed_collection: Collection, fixed_now: datetime.datetime
    ) -> None:
        collection = time_boxed_collection.model_copy(update={"calc_date": "2026-10-19T06:00:00Z"})
        assert revenue_gate(collection, _reading(100.0, 100.0), 0.5, now=fixed_now) == 1.0
