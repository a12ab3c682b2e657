"""In-memory entity store: the latest snapshot of every collection per partition.

Single writer (the main polling cycle), many readers. Records are replaced,
never merged, and a collection missing from a later listing is kept: absence
from a listing is not deletion.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable, Iterable

from Collection_Watch.models.collection import Collection, SnapshotRecord
from Collection_Watch.models.enums import PartitionType
from Collection_Watch.models.status import StoreStats

logger = logging.getLogger(__name__)


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class CollectionStore:
    """Latest known record per (collection ID, partition).

    Usage::

        store = CollectionStore()
        store.ingest(PartitionType.REGULAR, collections)
        record = store.get(664, PartitionType.REGULAR)
    """

    def __init__(self, clock: Callable[[], datetime.datetime] = _utc_now) -> None:
        self._clock = clock
        self._partitions: dict[PartitionType, dict[int, SnapshotRecord]] = {
            partition: {} for partition in PartitionType
        }
        self._last_update: datetime.datetime | None = None

    @property
    def last_update(self) -> datetime.datetime | None:
        return self._last_update

    def ingest(
        self, partition: PartitionType, collections: Iterable[Collection]
    ) -> list[SnapshotRecord]:
        """Replace the stored records for *collections* under *partition*.

        Returns:
            The new records, in input order.
        """
        now = self._clock()
        store = self._partitions[partition]
        records: list[SnapshotRecord] = []
        for collection in collections:
            record = SnapshotRecord(collection=collection, partition=partition, last_updated=now)
            store[collection.id] = record
            records.append(record)
        self._last_update = now
        logger.info("Stored %d %s collections", len(records), partition)
        return records

    def get(self, collection_id: int, partition: PartitionType) -> SnapshotRecord | None:
        return self._partitions[partition].get(collection_id)

    def records(self, partition: PartitionType | None = None) -> list[SnapshotRecord]:
        """All records, optionally restricted to one partition."""
        if partition is not None:
            return list(self._partitions[partition].values())
        return [record for store in self._partitions.values() for record in store.values()]

    def all_collections(self) -> list[Collection]:
        """Every stored collection once, deduplicated by slug (or ID without one).

        Partitions are visited in declaration order, so the first partition a
        collection was stored under wins.
        """
        unique: dict[str | int, Collection] = {}
        for store in self._partitions.values():
            for record in store.values():
                key: str | int = record.collection.slug or record.collection.id
                unique.setdefault(key, record.collection)
        return list(unique.values())

    def get_by_slug(self, slug: str) -> Collection | None:
        return next((c for c in self.all_collections() if c.slug == slug), None)

    def get_by_id(self, collection_id: int) -> Collection | None:
        return next((c for c in self.all_collections() if c.id == collection_id), None)

    def highest_id(self) -> int:
        """Highest collection ID stored in any partition (0 when empty)."""
        return max(
            (record.collection.id for record in self.records()),
            default=0,
        )

    def stats(self) -> StoreStats:
        regular = len(self._partitions[PartitionType.REGULAR])
        partner = len(self._partitions[PartitionType.PARTNER])
        time_boxed = len(self._partitions[PartitionType.TIME_BOXED])
        return StoreStats(
            regular_count=regular,
            partner_count=partner,
            time_boxed_count=time_boxed,
            total_collections=regular + partner + time_boxed,
            last_update=self._last_update,
        )
