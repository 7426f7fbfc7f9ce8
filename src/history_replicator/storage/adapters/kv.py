"""Shared behaviour for ordered key-value store adapters (LevelDB, RocksDB).

Keys are ``b"{start_unix}:{end_unix}"``, values the JSON of the interval.

These stores have no query engine, so reads are a full linear scan in key
order: filters are applied inline, ``offset`` matches are skipped and the scan
stops after ``limit`` matches. Cost is O(keys scanned), not O(page size).
Only natural key order (start_time ascending) can be returned; other sort
requests are not honored, which is why ``supports_native_filter_sort`` is
False and the read service warns about it.

The native clients are blocking and not safe for concurrent writers, so every
call runs in a worker thread while holding a per-adapter asyncio.Lock.
"""

import asyncio
from abc import abstractmethod
from collections.abc import Iterator
from typing import Any

from pydantic import ValidationError

from history_replicator.domain.models import Interval, ReadQuery

from .base import BaseStoreAdapter


class OrderedKVStoreAdapter(BaseStoreAdapter):
    """Write/read over a blocking ordered key-value handle."""

    supports_native_filter_sort = False

    def __init__(self, db: Any | None):
        super().__init__(db)
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Backend hooks (blocking, called from a worker thread)
    # ------------------------------------------------------------------
    @abstractmethod
    def _get(self, key: bytes) -> bytes | None:
        """Point lookup."""

    @abstractmethod
    def _put_durable(self, items: list[tuple[bytes, bytes]]) -> None:
        """Write all items, then flush/sync so they are on disk before returning."""

    @abstractmethod
    def _iter_items(self) -> Iterator[tuple[bytes, bytes]]:
        """Iterate (key, value) pairs in key order."""

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------
    async def _write_batch(self, batch: list[Interval]) -> int:
        async with self._lock:
            return await asyncio.to_thread(self._write_sync, batch)

    def _write_sync(self, batch: list[Interval]) -> int:
        pending: list[tuple[bytes, bytes]] = []
        for interval in batch:
            key = interval.kv_key()
            if self._get(key) is None:
                pending.append((key, encode_interval(interval)))
        if pending:
            self._put_durable(pending)
        return len(pending)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------
    async def _read(self, query: ReadQuery) -> list[Interval]:
        if not query.sort.is_natural_order:
            self.log.debug(
                "sort_not_honored",
                requested_field=query.sort.field.value,
                requested_direction=query.sort.direction.value,
            )
        async with self._lock:
            return await asyncio.to_thread(self._scan_sync, query)

    def _scan_sync(self, query: ReadQuery) -> list[Interval]:
        results: list[Interval] = []
        skipped = 0
        for key, value in self._iter_items():
            try:
                interval = decode_interval(value)
            except (ValidationError, ValueError) as e:
                self.log.error("undecodable_value", key=_safe_key(key), error=str(e))
                continue

            if not query.matches(interval):
                continue
            if skipped < query.offset:
                skipped += 1
                continue

            results.append(interval)
            if len(results) >= query.limit:
                break
        return results


def encode_interval(interval: Interval) -> bytes:
    return interval.model_dump_json(by_alias=True, exclude={"id"}).encode("utf-8")


def decode_interval(value: bytes) -> Interval:
    return Interval.model_validate_json(value)


def _safe_key(key: Any) -> str:
    if isinstance(key, bytes):
        return key.decode("utf-8", errors="replace")
    return str(key)
