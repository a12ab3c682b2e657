"""Custom exception hierarchy for the Collection Watch application.

All marketplace-facing exceptions inherit from MarketplaceError, which carries
contextual information about which collection and which source failed.
Notification and bootstrap failures have their own roots.
"""


class MarketplaceError(Exception):
    """Base exception for all marketplace and delivery failures.

    Attributes:
        collection_id: The collection ID involved in the failure, if any.
        source: The remote that failed (e.g., "marketplace", "telegram").
        http_status: The HTTP status code, if the failure was HTTP-related.
    """

    def __init__(
        self,
        message: str,
        *,
        source: str,
        collection_id: int | None = None,
        http_status: int | None = None,
    ) -> None:
        self.collection_id = collection_id
        self.source = source
        self.http_status = http_status
        super().__init__(message)


class CollectionNotFoundError(MarketplaceError):
    """Raised when a collection slug or ID does not resolve on the marketplace."""


class DataSourceUnavailableError(MarketplaceError):
    """Raised when the marketplace is unreachable or returning errors."""


class InsufficientDataError(MarketplaceError):
    """Raised when a revenue series is too sparse to derive a signal."""


class RateLimitExceededError(MarketplaceError):
    """Raised when a remote answers with a rate-limit response.

    ``retry_after`` holds the server-advised wait in seconds, or None when the
    response did not carry a parseable value.
    """

    def __init__(
        self,
        message: str,
        *,
        source: str,
        collection_id: int | None = None,
        http_status: int | None = 429,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(
            message,
            source=source,
            collection_id=collection_id,
            http_status=http_status,
        )
        self.retry_after = retry_after


class NotificationError(MarketplaceError):
    """Raised when a notification transport rejects a message."""


class ConfigurationError(Exception):
    """Raised at startup when required settings are missing or invalid."""
