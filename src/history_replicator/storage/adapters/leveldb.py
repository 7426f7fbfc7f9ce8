"""LevelDB ordered key-value store adapter (plyvel).

Batches are applied through a ``write_batch(sync=True)`` so the whole batch
is fsynced before ``write`` returns.
"""

from collections.abc import Iterator
from typing import Any

from .kv import OrderedKVStoreAdapter


class LevelDBStoreAdapter(OrderedKVStoreAdapter):
    """Scan-only store backed by a ``plyvel.DB`` handle."""

    store_id = "leveldb"

    def _get(self, key: bytes) -> bytes | None:
        return self.handle.get(key)

    def _put_durable(self, items: list[tuple[bytes, bytes]]) -> None:
        with self.handle.write_batch(sync=True) as wb:
            for key, value in items:
                wb.put(key, value)

    def _iter_items(self) -> Iterator[tuple[bytes, bytes]]:
        with self.handle.iterator() as it:
            yield from it

    async def close(self) -> None:
        db: Any = self._handle
        if db is not None:
            async with self._lock:
                db.close()
        await super().close()
