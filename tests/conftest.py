"""Shared test fixtures for the Collection Watch test suite.

Provides realistic sample instances of the core models and pre-wired mocks
of the outbound collaborators so tests don't need to inline large
construction blocks.
"""

import datetime
from unittest.mock import MagicMock

import pytest

from Collection_Watch.config import Settings
from Collection_Watch.models import (
    Collection,
    FanoutResult,
    PriceListing,
    Remuneration,
    RevenuePoint,
)
from Collection_Watch.notify.fanout import NotificationFanout
from Collection_Watch.services.marketplace import MarketplaceClient

SECONDS_PER_DAY = 86_400

FIXED_NOW = datetime.datetime(2026, 10, 19, 12, 0, 0, tzinfo=datetime.UTC)


@pytest.fixture()
def fixed_now() -> datetime.datetime:
    """Reference instant used by every injected clock."""
    return FIXED_NOW


@pytest.fixture()
def regular_collection() -> Collection:
    """A standard collection paying out in three days."""
    return Collection(
        id=501,
        name="Golden Goose",
        slug="golden-goose",
        kind=0,
        percent=12.25,
        reward_date=3 * SECONDS_PER_DAY,
        original_price=10.0,
        nfts_count=1000,
        bg_image="https://res.ortak1.me/images/golden-goose.png",
    )


@pytest.fixture()
def time_boxed_collection() -> Collection:
    """A time-boxed collection 28 days from payout, sitting at 100%."""
    return Collection(
        id=502,
        name="Winter Ball",
        slug="winter-ball",
        kind=8,
        percent=100.0,
        reward_date=28 * SECONDS_PER_DAY,
        original_price=25.0,
        calc_date="2026-10-09T12:00:00Z",
        nfts_count=500,
        bg_image="https://res.ortak1.me/images/winter-ball.png",
    )


@pytest.fixture()
def weak_revenue_series() -> list[RevenuePoint]:
    """Chart series whose last two points carry low revenue."""
    return [
        RevenuePoint(label="Oct - 17", percent=101.0, revenue=90.0, predicted_revenue=95.0),
        RevenuePoint(label="Oct - 18", percent=103.0, revenue=100.0, predicted_revenue=100.0),
    ]


@pytest.fixture()
def sample_listing() -> PriceListing:
    """Lowest listed item of the Golden Goose collection."""
    return PriceListing(
        id=9001,
        collection_id=501,
        name="Golden Goose #17",
        slug="golden-goose-17",
        price=10.0,
        market_price=10.5,
        file_thumb="https://res.ortak1.me/thumbs/golden-goose-17.png",
        remuneration=Remuneration(average_budget=0.02, reward_interval=30),
    )


@pytest.fixture()
def sample_settings() -> Settings:
    """Settings with only the main Telegram bot configured."""
    return Settings(
        telegram_token="123:main",
        telegram_channel_id="@collection_alerts",
        main_interval_seconds=0.01,
        discovery_interval_seconds=3600.0,
    )


@pytest.fixture()
def mock_fanout() -> MagicMock:
    """A NotificationFanout whose broadcasts all report telegram delivered."""
    fanout = MagicMock(spec=NotificationFanout)
    delivered = FanoutResult(delivered=["telegram"])
    for method in (
        "send_new_collection",
        "send_progress_change",
        "send_privileged_progress_change",
        "send_last_chance",
        "send_upcoming_rewards",
        "send_finishing_batch",
        "send_price_drop",
    ):
        getattr(fanout, method).return_value = delivered
    return fanout


@pytest.fixture()
def mock_marketplace() -> MagicMock:
    """A MarketplaceClient returning empty data for every call."""
    marketplace = MagicMock(spec=MarketplaceClient)
    marketplace.fetch_collections.return_value = []
    marketplace.fetch_revenue_series.return_value = []
    marketplace.probe_collection.return_value = None
    return marketplace
