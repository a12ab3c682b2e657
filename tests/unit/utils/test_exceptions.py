"""Tests for custom exception hierarchy.

Covers:
- Inheritance: marketplace-facing exceptions derive from MarketplaceError
- Attributes: collection_id, source, http_status accessible
- RateLimitExceededError carries retry_after and defaults to HTTP 429
- ConfigurationError stands apart from the marketplace hierarchy
"""

import pytest

from Collection_Watch.utils.exceptions import (
    CollectionNotFoundError,
    ConfigurationError,
    DataSourceUnavailableError,
    InsufficientDataError,
    MarketplaceError,
    NotificationError,
    RateLimitExceededError,
)


class TestMarketplaceErrorBase:
    """Tests for the base MarketplaceError exception."""

    def test_is_subclass_of_exception(self) -> None:
        assert issubclass(MarketplaceError, Exception)

    def test_attributes_accessible(self) -> None:
        exc = MarketplaceError(
            "Request failed",
            collection_id=501,
            source="marketplace",
            http_status=500,
        )
        assert exc.collection_id == 501
        assert exc.source == "marketplace"
        assert exc.http_status == 500

    def test_optional_attributes_default_to_none(self) -> None:
        exc = MarketplaceError("Request failed", source="marketplace")
        assert exc.collection_id is None
        assert exc.http_status is None

    def test_message_in_string_representation(self) -> None:
        exc = MarketplaceError("Connection timeout", source="marketplace")
        assert "Connection timeout" in str(exc)


class TestSubclasses:
    """Each subclass is caught by its own type and by MarketplaceError."""

    @pytest.mark.parametrize(
        "exc_type",
        [
            CollectionNotFoundError,
            DataSourceUnavailableError,
            InsufficientDataError,
            NotificationError,
            RateLimitExceededError,
        ],
    )
    def test_caught_by_parent(self, exc_type: type[MarketplaceError]) -> None:
        with pytest.raises(MarketplaceError, match="boom"):
            raise exc_type("boom", source="test")

    def test_not_found_is_not_unavailable(self) -> None:
        assert not issubclass(CollectionNotFoundError, DataSourceUnavailableError)


class TestRateLimitExceededError:
    def test_defaults(self) -> None:
        exc = RateLimitExceededError("Too Many Requests", source="telegram")
        assert exc.http_status == 429
        assert exc.retry_after is None

    def test_retry_after(self) -> None:
        exc = RateLimitExceededError("Too Many Requests", source="telegram", retry_after=17.0)
        assert exc.retry_after == 17.0


class TestConfigurationError:
    def test_outside_marketplace_hierarchy(self) -> None:
        assert not issubclass(ConfigurationError, MarketplaceError)
        with pytest.raises(ConfigurationError):
            raise ConfigurationError("DEV_TELEGRAM_TOKEN missing")
