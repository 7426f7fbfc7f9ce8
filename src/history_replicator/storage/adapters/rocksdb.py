"""RocksDB ordered key-value store adapter (rocksdict).

Each batch is written key by key and followed by an explicit memtable
``flush()`` so the data is durable before ``write`` returns.
"""

from collections.abc import Iterator
from typing import Any

from .kv import OrderedKVStoreAdapter


class RocksDBStoreAdapter(OrderedKVStoreAdapter):
    """Scan-only store backed by a ``rocksdict.Rdict`` handle."""

    store_id = "rocksdb"

    def _get(self, key: bytes) -> bytes | None:
        return self.handle.get(key)

    def _put_durable(self, items: list[tuple[bytes, bytes]]) -> None:
        db = self.handle
        for key, value in items:
            db.put(key, value)
        db.flush()

    def _iter_items(self) -> Iterator[tuple[bytes, bytes]]:
        yield from self.handle.items()

    async def close(self) -> None:
        db: Any = self._handle
        if db is not None:
            async with self._lock:
                db.close()
        await super().close()
