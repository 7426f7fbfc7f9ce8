"""Timing and record-count instrumentation for store operations.

Every adapter read/write runs inside an ``OperationMetrics`` block which:
- logs a ``store_operation_completed`` event with the elapsed time
- observes a Prometheus histogram / counter labelled by store and operation
- optionally appends a human-readable line to a metrics file
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from prometheus_client import REGISTRY, Counter, Histogram

from .logging import get_storage_logger


class DatabaseOperation(str, Enum):
    """Kind of store operation being measured."""

    READ = "read"
    WRITE = "write"


# Safe metric registration: only register if not already registered
STORE_OPERATION_SECONDS = REGISTRY._names_to_collectors.get(
    "history_replicator_store_operation_seconds"
)
if STORE_OPERATION_SECONDS is None:
    STORE_OPERATION_SECONDS = Histogram(
        "history_replicator_store_operation_seconds",
        "Duration of store adapter operations",
        ["store", "operation", "status"],
    )

STORE_RECORDS = REGISTRY._names_to_collectors.get(
    "history_replicator_store_records_total"
)
if STORE_RECORDS is None:
    STORE_RECORDS = Counter(
        "history_replicator_store_records_total",
        "Records handled by store adapter operations",
        ["store", "operation"],
    )

_metrics_file: Path | None = None


def configure_metrics_file(path: str | Path | None) -> None:
    """Set (or clear) the file that receives one line per finished operation."""
    global _metrics_file
    _metrics_file = Path(path) if path else None


def _write_to_metrics_file(message: str) -> None:
    if _metrics_file is None:
        return
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
    try:
        _metrics_file.parent.mkdir(parents=True, exist_ok=True)
        with _metrics_file.open("a", encoding="utf-8") as f:
            f.write(f"[{timestamp}] {message}\n")
    except OSError as e:
        log = get_storage_logger("operation-metrics")
        log.error("metrics_file_write_failed", path=str(_metrics_file), error=str(e))


class OperationMetrics:
    """Measures one store operation.

    Usage:
        >>> with OperationMetrics("leveldb", DatabaseOperation.WRITE, len(batch)) as m:
        ...     m.record_count = await do_write()

    ``record_count`` may be updated inside the block so the reported figure
    reflects what the operation actually touched.
    """

    def __init__(
        self,
        store_id: str,
        operation: DatabaseOperation,
        record_count: int = 0,
        data_type: str = "unit intervals",
    ):
        self.store_id = store_id
        self.operation = DatabaseOperation(operation)
        self.record_count = record_count
        self.data_type = data_type
        self.status = "ok"
        self.duration: float | None = None
        self._start = time.perf_counter()

    def __enter__(self) -> OperationMetrics:
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.status = "error"
        self.finish()
        return False

    def finish(self) -> float:
        """Record the measurement and return the elapsed seconds."""
        if self.duration is not None:
            return self.duration

        self.duration = time.perf_counter() - self._start
        operation = self.operation.value

        STORE_OPERATION_SECONDS.labels(
            store=self.store_id, operation=operation, status=self.status
        ).observe(self.duration)
        if self.status == "ok":
            STORE_RECORDS.labels(store=self.store_id, operation=operation).inc(
                self.record_count
            )

        log = get_storage_logger("operation-metrics", store=self.store_id)
        log.info(
            "store_operation_completed",
            operation=operation,
            status=self.status,
            records=self.record_count,
            duration_ms=round(self.duration * 1000, 2),
        )

        total_ms = int(self.duration * 1000)
        minutes, rest_ms = divmod(total_ms, 60_000)
        seconds, millis = divmod(rest_ms, 1000)
        _write_to_metrics_file(
            f"Time taken for {self.store_id} to {operation} {self.data_type} data "
            f"({self.record_count} records) : {minutes}m {seconds}s {millis}ms"
        )
        return self.duration
