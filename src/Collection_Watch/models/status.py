"""Status models: monitor counters, delivery results, and health checks."""

import datetime

from pydantic import BaseModel, ConfigDict, Field

from Collection_Watch.models.enums import DiscoveryPhase


class DiscoveryStatus(BaseModel):
    """Snapshot of the discovery scanner's bookkeeping."""

    model_config = ConfigDict(frozen=True)

    phase: DiscoveryPhase
    highest_known_id: int
    notified_count: int
    initialized_count: int


class StoreStats(BaseModel):
    """Entity counts per partition."""

    model_config = ConfigDict(frozen=True)

    regular_count: int
    partner_count: int
    time_boxed_count: int
    total_collections: int
    last_update: datetime.datetime | None = None


class MonitorStatus(BaseModel):
    """Combined view used by the CLI."""

    model_config = ConfigDict(frozen=True)

    store: StoreStats
    discovery: DiscoveryStatus
    scheduled_alerts: int


class FanoutResult(BaseModel):
    """Per-transport outcome of one broadcast.

    A transport lands in exactly one bucket: delivered, skipped (not
    configured for this kind of alert), or failed (with the error text).
    """

    model_config = ConfigDict(frozen=True)

    delivered: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """True when no transport failed."""
        return not self.failed


class HealthStatus(BaseModel):
    """Status of external dependencies the monitor relies on."""

    model_config = ConfigDict(frozen=True)

    marketplace_available: bool
    telegram_available: bool
    privileged_available: bool
    yo_configured: bool
    last_check: datetime.datetime
