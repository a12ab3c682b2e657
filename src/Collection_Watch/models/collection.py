"""Collection models: catalog entities, stored snapshots, and probe results.

Field names follow the marketplace's camelCase payload through aliases, so
raw API dictionaries validate directly while Python code uses snake_case.
"""

import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field

from Collection_Watch.models.enums import PartitionType

# Marketplace kind code for time-boxed ("snowball") collections
TIME_BOXED_KIND: int = 8

SECONDS_PER_DAY: int = 24 * 60 * 60


class Collection(BaseModel):
    """One trackable catalog collection as reported by the marketplace.

    Frozen because a collection is a point-in-time observation; derived copies
    (e.g. a pinned countdown for a last-chance alert) use ``model_copy``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: int
    name: str = ""
    slug: str = ""
    kind: int = Field(default=0, alias="type")
    percent: float = 0.0
    reward_date: float | None = Field(default=None, alias="rewardDate")
    live_date: float | None = Field(default=None, alias="liveDate")
    original_price: float = Field(default=0.0, alias="originalPrice")
    calc_date: str | None = Field(default=None, alias="calcDate")
    nfts_count: int | None = Field(default=None, alias="nftsCount")
    bg_image: str | None = Field(default=None, alias="bgImage")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_time_boxed(self) -> bool:
        """True for collections with a bounded earning window."""
        return self.kind == TIME_BOXED_KIND

    @property
    def days_until_reward(self) -> float:
        """Reward countdown expressed in days (0 when unknown)."""
        return (self.reward_date or 0.0) / SECONDS_PER_DAY


class SnapshotRecord(BaseModel):
    """A collection as stored by the entity store for one partition."""

    model_config = ConfigDict(frozen=True)

    collection: Collection
    partition: PartitionType
    last_updated: datetime.datetime

    @property
    def key(self) -> tuple[int, PartitionType]:
        """Store key: the (id, partition) cross-product."""
        return (self.collection.id, self.partition)


class ProbeResult(BaseModel):
    """Outcome of a successful existence probe for one collection ID."""

    model_config = ConfigDict(frozen=True)

    collection_id: int
    slug: str
    total_items: int
    url: str


class CollectionPage(BaseModel):
    """One page of a partition listing."""

    model_config = ConfigDict(frozen=True)

    items: list[Collection]
    total_count: int
    per_page: int
