"""Monitoring components and the loop runner.

Re-exports all public components so consumers can import directly:
    from Collection_Watch.monitor import CollectionMonitor, ChangeDetector
"""

from Collection_Watch.monitor.detector import ChangeDetector
from Collection_Watch.monitor.discovery import DiscoveryScanner
from Collection_Watch.monitor.prices import PriceDropMonitor
from Collection_Watch.monitor.rewards import RewardMonitor
from Collection_Watch.monitor.runner import CollectionMonitor
from Collection_Watch.monitor.scheduler import DeadlineScheduler, ScheduledAlert
from Collection_Watch.monitor.store import CollectionStore

__all__ = [
    # State
    "CollectionStore",
    # Detection
    "ChangeDetector",
    "DiscoveryScanner",
    "PriceDropMonitor",
    # Timed alerts
    "DeadlineScheduler",
    "RewardMonitor",
    "ScheduledAlert",
    # Orchestration
    "CollectionMonitor",
]
