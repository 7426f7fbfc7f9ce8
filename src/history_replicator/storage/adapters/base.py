"""Base store adapter.

Defines the write/read contract every backend implements and the shared
plumbing around it:
- availability (a ``None`` handle means the backend is not configured)
- metrics around every operation
- wrapping backend exceptions into StoreWriteError / StoreReadError
- per-batch deduplication of natural keys
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from history_replicator.domain.models import Interval, ReadQuery
from history_replicator.exceptions import (
    StoreError,
    StoreReadError,
    StoreUnavailableError,
    StoreWriteError,
)
from history_replicator.infrastructure.observability import (
    DatabaseOperation,
    OperationMetrics,
    get_storage_logger,
)


@runtime_checkable
class StoreAdapter(Protocol):
    """Capability set shared by every backend."""

    store_id: str
    supports_native_filter_sort: bool

    @property
    def is_available(self) -> bool: ...

    async def write(self, batch: Sequence[Interval]) -> int:
        """Store intervals whose natural key is absent. Returns newly stored count."""
        ...

    async def read(self, query: ReadQuery) -> list[Interval]:
        """Filtered, sorted, paginated read."""
        ...


class BaseStoreAdapter(ABC):
    """Common behaviour for store adapters.

    Subclasses implement ``_write_batch`` and ``_read`` against their own
    client handle. The existence check in ``_write_batch`` is not atomic with
    the insert; concurrent writers may both insert (at-least-once).
    """

    store_id: str = "base"
    supports_native_filter_sort: bool = True

    def __init__(self, handle: Any | None, data_type: str = "unit intervals"):
        self._handle = handle
        self.data_type = data_type
        self.log = get_storage_logger(f"{self.store_id}-adapter", store=self.store_id)

    @property
    def is_available(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> Any:
        if self._handle is None:
            raise StoreUnavailableError(self.store_id, "backend not configured")
        return self._handle

    async def write(self, batch: Sequence[Interval]) -> int:
        if not self.is_available:
            self.log.debug("write_skipped_unavailable", batch=len(batch))
            return 0
        if not batch:
            return 0

        unique = dedupe_batch(batch)
        with OperationMetrics(
            self.store_id, DatabaseOperation.WRITE, len(unique), self.data_type
        ) as metrics:
            try:
                written = await self._write_batch(unique)
            except StoreError:
                raise
            except Exception as e:
                self.log.error("batch_write_failed", batch=len(unique), error=str(e))
                raise StoreWriteError(self.store_id, str(e)) from e
            metrics.record_count = written

        self.log.info(
            "batch_written",
            received=len(batch),
            written=written,
            skipped=len(unique) - written,
        )
        return written

    async def read(self, query: ReadQuery) -> list[Interval]:
        if not self.is_available:
            raise StoreUnavailableError(self.store_id, "backend not configured")

        with OperationMetrics(
            self.store_id, DatabaseOperation.READ, query.limit, self.data_type
        ) as metrics:
            try:
                results = await self._read(query)
            except StoreError:
                raise
            except Exception as e:
                self.log.error("read_failed", error=str(e))
                raise StoreReadError(self.store_id, str(e)) from e
            metrics.record_count = len(results)

        return results

    @abstractmethod
    async def _write_batch(self, batch: list[Interval]) -> int:
        """Existence-check then insert each interval; return the inserted count."""

    @abstractmethod
    async def _read(self, query: ReadQuery) -> list[Interval]:
        """Backend-specific filtered/sorted/paginated read."""

    async def close(self) -> None:
        """Release the handle. Adapters owning a closable client override this."""
        self._handle = None

    def __repr__(self) -> str:
        state = "available" if self.is_available else "unavailable"
        return f"<{type(self).__name__} store_id={self.store_id!r} {state}>"


def dedupe_batch(batch: Sequence[Interval]) -> list[Interval]:
    """Drop repeated natural keys inside one batch, keeping first occurrence."""
    seen: set[tuple] = set()
    unique: list[Interval] = []
    for interval in batch:
        if interval.natural_key in seen:
            continue
        seen.add(interval.natural_key)
        unique.append(interval)
    return unique
