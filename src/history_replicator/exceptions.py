"""
Exception hierarchy for history-replicator.

Provides specific exception types for upstream fetching, store access and
replication so callers can classify failures without parsing messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from history_replicator.replication.models import ReplicationReport


class HistoryReplicatorError(Exception):
    """Base exception for all replicator errors."""


class ConfigurationError(HistoryReplicatorError):
    """Configuration could not be loaded or validated."""


# ---------------------------------------------------------------------------
# Upstream fetching
# ---------------------------------------------------------------------------


class FetchError(HistoryReplicatorError):
    """Base exception for upstream API failures."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class RateLimitedError(FetchError):
    """Upstream body carried the throttling marker."""

    pass


class MalformedResponseError(FetchError):
    """Upstream body could not be parsed into intervals."""

    def __init__(self, message: str, body_preview: str = "", url: str | None = None):
        super().__init__(message, url=url)
        self.body_preview = body_preview


class UpstreamTransportError(FetchError):
    """Connection refused, reset, timed out, ..."""

    pass


class FetchRetriesExhausted(FetchError):
    """The retry policy gave up before a valid payload was received."""

    def __init__(self, message: str, attempts: int, url: str | None = None):
        super().__init__(message, url=url)
        self.attempts = attempts


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class StoreError(HistoryReplicatorError):
    """Base exception for store adapter failures."""

    code = "store_error"

    def __init__(self, store_id: str, message: str):
        super().__init__(f"[{store_id}] {message}")
        self.store_id = store_id
        self.message = message


class StoreUnavailableError(StoreError):
    """Backend handle was never initialized."""

    code = "store_unavailable"


class StoreWriteError(StoreError):
    """Existence check or insert failed."""

    code = "store_write_failed"


class StoreReadError(StoreError):
    """Filtered/sorted/paginated read failed."""

    code = "store_read_failed"


class UnsupportedQueryError(StoreError):
    """Store cannot honor the requested query (e.g. sort on a scan-only store)."""

    code = "unsupported_sort"


class UnknownStoreError(StoreError):
    """No adapter is registered under the requested store id."""

    code = "unknown_store"


class InvalidQueryError(HistoryReplicatorError):
    """Read parameters could not be turned into a query."""

    code = "invalid_query"


# ---------------------------------------------------------------------------
# Cursor
# ---------------------------------------------------------------------------


class CursorPersistenceError(HistoryReplicatorError):
    """The cursor document could not be read from or written to its store."""

    def __init__(self, message: str, key: str):
        super().__init__(f"{message} (key={key})")
        self.key = key


# ---------------------------------------------------------------------------
# Replication
# ---------------------------------------------------------------------------


class ReplicationError(HistoryReplicatorError):
    """At least one configured store failed to accept the batch."""

    def __init__(self, report: ReplicationReport):
        failed = ", ".join(
            f"{o.store_id}: {o.error}" for o in report.per_store.values() if o.failed
        )
        super().__init__(f"Replication failed for {failed}")
        self.report = report
