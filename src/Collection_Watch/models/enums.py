"""StrEnum types for the collection-monitoring domain.

Values are lowercase strings. Use enum members in business logic, never raw strings.
"""

from enum import StrEnum


class PartitionType(StrEnum):
    """Catalog partition a collection listing was fetched from."""

    REGULAR = "regular"
    PARTNER = "partner"
    TIME_BOXED = "regular_snowball"


class DiscoveryPhase(StrEnum):
    """Lifecycle of the discovery scanner."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class ScheduleOutcome(StrEnum):
    """What the deadline scheduler did with an observed activation countdown."""

    TOO_EARLY = "too_early"
    SCHEDULED = "scheduled"
    ALREADY_SCHEDULED = "already_scheduled"
    FIRED = "fired"
    ALREADY_FIRED = "already_fired"
    NOT_SCHEDULABLE = "not_schedulable"


class PriceUpdateType(StrEnum):
    """Kind of lowest-price event from the real-time feed."""

    ADD = "add"
    REMOVE = "remove"
