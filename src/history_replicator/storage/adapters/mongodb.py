"""MongoDB document store adapter (motor).

Documents in ``unit_intervals``:
    {start_time: Date, end_time: Date, count: Int64, units: Int64, created_at: Date}

Existence is checked with ``find_one`` on (start_time, end_time) before each
``insert_one``; the pair is not atomic.
"""

from datetime import UTC, datetime
from typing import Any

from pymongo import ASCENDING, DESCENDING

from history_replicator.domain.models import Interval, ReadQuery, SortDirection

from .base import BaseStoreAdapter


class MongoStoreAdapter(BaseStoreAdapter):
    """Document store backed by a motor collection."""

    store_id = "mongodb"
    supports_native_filter_sort = True

    def __init__(self, collection: Any | None):
        """
        Args:
            collection: AsyncIOMotorCollection (or None when MongoDB is not configured)
        """
        super().__init__(collection)

    async def _write_batch(self, batch: list[Interval]) -> int:
        collection = self.handle
        stored_count = 0
        for interval in batch:
            key_filter = {
                "start_time": interval.start_time,
                "end_time": interval.end_time,
            }
            if await collection.find_one(key_filter) is not None:
                continue
            await collection.insert_one(
                {
                    **key_filter,
                    "count": interval.count,
                    "units": interval.units,
                    "created_at": datetime.now(UTC),
                }
            )
            stored_count += 1
        return stored_count

    @staticmethod
    def build_filter(query: ReadQuery) -> dict[str, Any]:
        mongo_filter: dict[str, Any] = {}
        if query.time_range is not None:
            start, end = query.time_range
            mongo_filter["start_time"] = {"$gte": start}
            mongo_filter["end_time"] = {"$lte": end}
        if query.min_units is not None:
            mongo_filter["units"] = {"$gt": query.min_units}
        return mongo_filter

    @staticmethod
    def build_sort(query: ReadQuery) -> list[tuple[str, int]]:
        direction = DESCENDING if query.sort.direction == SortDirection.DESC else ASCENDING
        sort = [(query.sort.field.value, direction)]
        if query.sort.field.value != "start_time":
            sort.append(("start_time", direction))
        return sort

    async def _read(self, query: ReadQuery) -> list[Interval]:
        cursor = (
            self.handle.find(self.build_filter(query))
            .sort(self.build_sort(query))
            .skip(query.offset)
            .limit(query.limit)
        )
        docs = await cursor.to_list(length=query.limit)
        return [
            Interval(
                id=doc.get("_id"),
                start_time=doc["start_time"],
                end_time=doc["end_time"],
                count=doc["count"],
                units=doc["units"],
            )
            for doc in docs
        ]

    async def close(self) -> None:
        if self._handle is not None:
            self._handle.database.client.close()
        await super().close()
