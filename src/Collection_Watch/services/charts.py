"""Chart renderer contract and the series preparation that feeds it.

Rendering itself is an injected collaborator; this module only decides which
points a chart should show.
"""

from __future__ import annotations

import datetime
import logging
from typing import Protocol

from Collection_Watch.models.collection import Collection
from Collection_Watch.models.revenue import RevenuePoint

logger = logging.getLogger(__name__)


class ChartRenderer(Protocol):
    """Anything that can turn a prepared series into image bytes."""

    async def render(self, points: list[RevenuePoint], collection: Collection) -> bytes | None:
        """Return PNG bytes, or None when nothing could be drawn."""
        ...


def today_label(today: datetime.date) -> str:
    """Chart label for *today* in the marketplace's ``"Mon - DD"`` form."""
    return f"{today.strftime('%b')} - {today.day:02d}"


def _with_current_point(
    series: list[RevenuePoint],
    collection: Collection,
    today: datetime.date,
) -> list[RevenuePoint]:
    label = today_label(today)
    latest = series[-1]
    if latest.label != label:
        return [
            *series,
            RevenuePoint(
                label=label,
                percent=collection.percent,
                revenue=0.0,
                predicted_revenue=0.0,
                market_price=latest.market_price,
            ),
        ]
    if latest.percent != collection.percent:
        return [*series[:-1], latest.model_copy(update={"percent": collection.percent})]
    return series


def _drop_flat_points(series: list[RevenuePoint]) -> list[RevenuePoint]:
    kept = [series[0]]
    for point in series[1:]:
        if point.percent != kept[-1].percent:
            kept.append(point)
    return kept


def build_chart_points(
    collection: Collection,
    previous_percent: float,
    series: list[RevenuePoint] | None,
    *,
    now: datetime.datetime | None = None,
) -> list[RevenuePoint]:
    """Prepare the points a progress-change chart should plot.

    Standard collections get today's point added (or its percent refreshed)
    and runs of equal percent collapsed to their first point. Time-boxed
    series are used as returned. Without any series, a two-point
    previous/current fallback is produced.
    """
    current = now or datetime.datetime.now(datetime.UTC)
    if not series:
        earlier = current - datetime.timedelta(hours=1)
        return [
            RevenuePoint(label=earlier.strftime("%m/%d/%Y"), percent=previous_percent),
            RevenuePoint(label=current.strftime("%m/%d/%Y"), percent=collection.percent),
        ]

    if collection.is_time_boxed:
        return list(series)

    return _drop_flat_points(_with_current_point(series, collection, current.date()))
