"""Domain events handed from the monitors to the notification fan-out.

ChangeRecord is ephemeral: it lives for one detection pass only.
"""

from pydantic import BaseModel, ConfigDict, Field

from Collection_Watch.models.collection import Collection
from Collection_Watch.models.enums import PartitionType, PriceUpdateType
from Collection_Watch.models.revenue import LatestRevenue


class ChangeRecord(BaseModel):
    """Progress movement of one collection between two polls."""

    model_config = ConfigDict(frozen=True)

    collection_id: int
    partition: PartitionType
    previous: float
    current: float
    delta: float
    signed_delta: float
    threshold: float


class ProgressChangeAlert(BaseModel):
    """A qualified progress change ready for delivery."""

    model_config = ConfigDict(frozen=True)

    collection: Collection
    change: ChangeRecord
    latest_revenue: LatestRevenue | None = None


class FinishingItem(BaseModel):
    """One entry of a batched "finishing soon" alert."""

    model_config = ConfigDict(frozen=True)

    collection: Collection
    latest_revenue: LatestRevenue | None = None


class Remuneration(BaseModel):
    """Payout parameters attached to a listed item."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    average_budget: float = Field(default=0.0, alias="averageBudget")
    reward_interval: float = Field(default=0.0, alias="rewardInterval")


class PriceListing(BaseModel):
    """The lowest-priced listed item of a collection, from the real-time feed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: int
    collection_id: int = Field(alias="collectionId")
    name: str = ""
    slug: str = ""
    price: float
    market_price: float = Field(default=0.0, alias="marketPrice")
    last_sold_price: float | None = Field(default=None, alias="lastSoldPrice")
    file_thumb: str | None = Field(default=None, alias="fileThumb")
    remuneration: Remuneration = Field(default_factory=Remuneration)


class PriceUpdate(BaseModel):
    """One add/remove event from the lowest-price feed."""

    model_config = ConfigDict(frozen=True)

    type: PriceUpdateType
    data: PriceListing


class PriceDropAlert(BaseModel):
    """A significant drop of a collection's lowest listed price."""

    model_config = ConfigDict(frozen=True)

    listing: PriceListing
    collection: Collection
    previous_lowest: PriceListing

    @property
    def drop_percent(self) -> float:
        """Relative drop versus the previous lowest price, in percent."""
        previous = self.previous_lowest.price
        if previous <= 0:
            return 0.0
        return (previous - self.listing.price) / previous * 100


class AlertMessage(BaseModel):
    """Rendered alert text plus the link button that accompanies it."""

    model_config = ConfigDict(frozen=True)

    text: str
    url: str
    button_text: str = ""
    secondary_url: str | None = None
