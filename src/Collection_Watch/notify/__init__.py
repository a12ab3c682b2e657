"""Alert formatting and delivery to the notification channels.

Re-exports the transports and the fan-out:
    from Collection_Watch.notify import NotificationFanout, TelegramTransport
"""

from Collection_Watch.notify.base import NotificationTransport
from Collection_Watch.notify.fanout import NotificationFanout
from Collection_Watch.notify.telegram import TelegramTransport
from Collection_Watch.notify.yoai import YoAITransport

__all__ = [
    # Protocol
    "NotificationTransport",
    # Transports
    "TelegramTransport",
    "YoAITransport",
    # Broadcast
    "NotificationFanout",
]
