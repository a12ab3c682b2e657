"""Revenue-series models: chart points and the latest revenue reading."""

from pydantic import BaseModel, ConfigDict, Field


class RevenuePoint(BaseModel):
    """A single point of a collection's chart series.

    ``revenue`` and ``predicted_revenue`` map the marketplace's gross gaming
    revenue fields; both are missing on standard collections.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    label: str
    percent: float | None = None
    revenue: float | None = Field(default=None, alias="ggr")
    predicted_revenue: float | None = Field(default=None, alias="predictedGgr")
    market_price: float | None = Field(default=None, alias="marketPrice")


class LatestRevenue(BaseModel):
    """Most recent revenue reading with the one before it, for diff display."""

    model_config = ConfigDict(frozen=True)

    revenue: float
    previous_revenue: float
    predicted_revenue: float | None
    label: str
