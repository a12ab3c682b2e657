"""Marketplace access, delivery pacing, and revenue/chart helpers.

Re-exports all public service classes so consumers can import directly:
    from Collection_Watch.services import MarketplaceClient, DispatchQueue
"""

from Collection_Watch.services.charts import ChartRenderer, build_chart_points
from Collection_Watch.services.dispatch import DispatchQueue
from Collection_Watch.services.health import HealthService
from Collection_Watch.services.marketplace import MarketplaceClient
from Collection_Watch.services.revenue import (
    latest_revenue,
    require_latest_revenue,
    revenue_gate,
)

__all__ = [
    # Infrastructure
    "DispatchQueue",
    # Data services
    "MarketplaceClient",
    # Revenue and charts
    "ChartRenderer",
    "build_chart_points",
    "latest_revenue",
    "require_latest_revenue",
    "revenue_gate",
    # Auxiliary services
    "HealthService",
]
