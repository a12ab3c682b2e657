"""Revenue signals derived from a collection's chart series.

These functions are pure: callers fetch the series, these interpret it.
``require_latest_revenue`` raises InsufficientDataError on a sparse series;
``latest_revenue`` and ``revenue_gate`` turn missing data into the permissive
outcome (no reading, or a gate that lets the alert through).
"""

from __future__ import annotations

import datetime
import logging
import math
from typing import Final

from Collection_Watch.models.collection import SECONDS_PER_DAY, Collection
from Collection_Watch.models.revenue import LatestRevenue, RevenuePoint
from Collection_Watch.utils.exceptions import InsufficientDataError

logger = logging.getLogger(__name__)

REVENUE_SOURCE: Final[str] = "revenue"

# ---------------------------------------------------------------------------
# Daily revenue bands (marketplace currency per day)
# ---------------------------------------------------------------------------

DAILY_MIN_PREDICTED_REVENUE: Final[float] = 50.0
DAILY_MIN_ACTUAL_REVENUE: Final[float] = 100.0

# (band multiplier of the minimums, multiplier applied to the delta), ascending
_REVENUE_BANDS: Final[tuple[tuple[int, int], ...]] = ((1, 5), (2, 3), (3, 2))


def require_latest_revenue(
    collection: Collection, series: list[RevenuePoint] | None
) -> LatestRevenue:
    """Return the last revenue reading of a time-boxed collection's series.

    Needs at least two points, and both of the last two must carry a non-zero
    revenue. Standard collections never report revenue.

    Raises:
        InsufficientDataError: When the series carries no usable reading.
    """
    if not collection.is_time_boxed:
        msg = f"{collection.name} is not time-boxed and reports no revenue"
        raise InsufficientDataError(msg, source=REVENUE_SOURCE, collection_id=collection.id)
    if not series or len(series) < 2:  # noqa: PLR2004
        msg = f"Insufficient revenue data for {collection.name}"
        raise InsufficientDataError(msg, source=REVENUE_SOURCE, collection_id=collection.id)

    latest = series[-1]
    previous = series[-2]
    if not latest.revenue or not previous.revenue:
        msg = f"Missing revenue values for {collection.name}"
        raise InsufficientDataError(msg, source=REVENUE_SOURCE, collection_id=collection.id)

    return LatestRevenue(
        revenue=latest.revenue,
        previous_revenue=previous.revenue,
        predicted_revenue=latest.predicted_revenue,
        label=latest.label,
    )


def latest_revenue(
    collection: Collection, series: list[RevenuePoint] | None
) -> LatestRevenue | None:
    """Like ``require_latest_revenue``, but None when there is no reading."""
    try:
        return require_latest_revenue(collection, series)
    except InsufficientDataError as exc:
        logger.debug("%s", exc)
        return None


def _parse_calc_date(value: str) -> datetime.datetime | None:
    try:
        parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable calcDate %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.UTC)
    return parsed


def revenue_gate(
    collection: Collection,
    revenue: LatestRevenue | None,
    delta: float,
    *,
    now: datetime.datetime | None = None,
) -> float:
    """Required progress move for a time-boxed alert, given its revenue signal.

    Daily averages are taken over the whole days elapsed since the
    collection's ``calc_date``. The weaker the daily predicted and actual
    revenue, the larger the multiple of *delta* required:

    ============================  ==========
    both daily averages below     required
    ============================  ==========
    50 predicted / 100 actual     5 x delta
    100 predicted / 200 actual    3 x delta
    150 predicted / 300 actual    2 x delta
    otherwise                     delta
    ============================  ==========

    Args:
        collection: The time-boxed collection being evaluated.
        revenue: Its latest revenue reading, or None when unavailable.
        delta: The threshold already resolved by the delta policy.
        now: Reference instant (defaults to the current UTC time).

    Returns:
        The effective required move. 0 when data is missing or the reference
        date lies in the future, 1 when it is today; both let nearly any
        qualifying move through.
    """
    if (
        revenue is None
        or not revenue.predicted_revenue
        or not revenue.revenue
        or not collection.calc_date
    ):
        return 0.0

    calc_date = _parse_calc_date(collection.calc_date)
    if calc_date is None:
        return 0.0

    current = now or datetime.datetime.now(datetime.UTC)
    days_elapsed = math.floor((current - calc_date).total_seconds() / SECONDS_PER_DAY)
    if days_elapsed < 0:
        return 0.0
    if days_elapsed == 0:
        return 1.0

    daily_predicted = revenue.predicted_revenue / days_elapsed
    daily_actual = revenue.revenue / days_elapsed

    for band, multiplier in _REVENUE_BANDS:
        if (
            daily_predicted < band * DAILY_MIN_PREDICTED_REVENUE
            and daily_actual < band * DAILY_MIN_ACTUAL_REVENUE
        ):
            logger.info(
                "%s: weak daily revenue (predicted %.2f, actual %.2f), requiring %sx delta",
                collection.name,
                daily_predicted,
                daily_actual,
                multiplier,
            )
            return delta * multiplier

    return delta
