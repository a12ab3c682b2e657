"""Contract every notification transport satisfies.

Each method returns True when the message was handed to the remote, False
when the transport deliberately does not carry that alert kind (e.g. no
privileged channel configured), and raises on delivery failure.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from Collection_Watch.models.collection import Collection
from Collection_Watch.models.events import FinishingItem, PriceDropAlert, ProgressChangeAlert


@runtime_checkable
class NotificationTransport(Protocol):
    """One outbound chat channel (Telegram, YoAI, ...)."""

    name: str

    async def send_new_collection(self, collection: Collection) -> bool: ...

    async def send_progress_change(
        self, alert: ProgressChangeAlert, image: bytes | None = None
    ) -> bool: ...

    async def send_privileged_progress_change(
        self, alert: ProgressChangeAlert, image: bytes | None = None
    ) -> bool: ...

    async def send_last_chance(self, collection: Collection) -> bool: ...

    async def send_upcoming_rewards(
        self, collections: list[Collection], *, time_boxed: bool = False
    ) -> bool: ...

    async def send_finishing_batch(self, items: list[FinishingItem]) -> bool: ...

    async def send_price_drop(self, alert: PriceDropAlert) -> bool: ...
