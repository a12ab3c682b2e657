"""Delta policy: how large a progress move must be before anyone is told.

Step tables are keyed by whole days until the reward payout. Each entry is
``(days strictly greater than, threshold)``, checked top to bottom; the
fallback applies when none match.
"""

from __future__ import annotations

from typing import Final

from Collection_Watch.models.collection import Collection

# --- Noise floor: moves at or below this are never reported ---
NOISE_FLOOR: Final[float] = 0.1

# Float subtraction noise (e.g. 12.35 - 12.25) is removed before comparing
DELTA_PRECISION: Final[int] = 6

# --- Standard collections: any meaningful move ---
STANDARD_THRESHOLD: Final[float] = 0.01

# --- Time-boxed collections: tolerance shrinks as the payout nears ---
TIME_BOXED_STEPS: Final[tuple[tuple[float, float], ...]] = (
    (27, 35.0),
    (25, 25.0),
    (22, 18.0),
    (20, 13.0),
    (15, 6.0),
    (10, 5.0),
    (5, 3.0),
)
TIME_BOXED_FINAL_THRESHOLD: Final[float] = 1.0

# --- Privileged channel: coarser table, any collection kind ---
PRIVILEGED_STEPS: Final[tuple[tuple[float, float], ...]] = (
    (27, 20.0),
    (25, 15.0),
    (22, 12.0),
    (20, 9.0),
    (10, 5.0),
)
PRIVILEGED_FINAL_THRESHOLD: Final[float] = 1.0

# --- Privileged one-shot jump: large rounded move to a high level ---
PRIVILEGED_JUMP: Final[int] = 100
PRIVILEGED_JUMP_LEVEL: Final[float] = 200.0

# Boundary time-boxed progress must reach before alerts mean anything
COMPLETION_LEVEL: Final[float] = 100.0


def _step(days: float, steps: tuple[tuple[float, float], ...], fallback: float) -> float:
    for above, threshold in steps:
        if days > above:
            return threshold
    return fallback


def resolve_delta(collection: Collection) -> float:
    """Public-channel threshold for *collection*."""
    if not collection.is_time_boxed:
        return STANDARD_THRESHOLD
    return _step(collection.days_until_reward, TIME_BOXED_STEPS, TIME_BOXED_FINAL_THRESHOLD)


def resolve_privileged_delta(collection: Collection) -> float:
    """Privileged-channel threshold for *collection*."""
    return _step(collection.days_until_reward, PRIVILEGED_STEPS, PRIVILEGED_FINAL_THRESHOLD)


def absolute_delta(previous: float, current: float) -> float:
    return round(abs(current - previous), DELTA_PRECISION)


def clears_noise_floor(delta: float) -> bool:
    """True when *delta* is strictly above the noise floor."""
    return delta > NOISE_FLOOR


def below_completion(collection: Collection, previous: float) -> bool:
    """Time-boxed and under 100% on both sides of the comparison."""
    return (
        collection.is_time_boxed
        and collection.percent < COMPLETION_LEVEL
        and previous < COMPLETION_LEVEL
    )
