"""Pydantic v2 models, enums, and type definitions.

Re-exports all public models so consumers can import directly:
    from Collection_Watch.models import Collection, PartitionType, ChangeRecord
"""

from Collection_Watch.models.collection import (
    TIME_BOXED_KIND,
    Collection,
    CollectionPage,
    ProbeResult,
    SnapshotRecord,
)
from Collection_Watch.models.enums import (
    DiscoveryPhase,
    PartitionType,
    PriceUpdateType,
    ScheduleOutcome,
)
from Collection_Watch.models.events import (
    AlertMessage,
    ChangeRecord,
    FinishingItem,
    PriceDropAlert,
    PriceListing,
    PriceUpdate,
    ProgressChangeAlert,
    Remuneration,
)
from Collection_Watch.models.revenue import LatestRevenue, RevenuePoint
from Collection_Watch.models.status import (
    DiscoveryStatus,
    FanoutResult,
    HealthStatus,
    MonitorStatus,
    StoreStats,
)

__all__ = [
    # Enums
    "DiscoveryPhase",
    "PartitionType",
    "PriceUpdateType",
    "ScheduleOutcome",
    # Collections
    "TIME_BOXED_KIND",
    "Collection",
    "CollectionPage",
    "ProbeResult",
    "SnapshotRecord",
    # Revenue
    "LatestRevenue",
    "RevenuePoint",
    # Events
    "AlertMessage",
    "ChangeRecord",
    "FinishingItem",
    "PriceDropAlert",
    "PriceListing",
    "PriceUpdate",
    "ProgressChangeAlert",
    "Remuneration",
    # Status
    "DiscoveryStatus",
    "FanoutResult",
    "HealthStatus",
    "MonitorStatus",
    "StoreStats",
]
