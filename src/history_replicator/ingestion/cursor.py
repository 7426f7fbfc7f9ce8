"""Ingestion cursor: the upstream time up to which intervals have been replicated."""

import asyncio
from datetime import UTC, datetime

from botocore.exceptions import BotoCoreError, ClientError

from history_replicator.config.state import DEFAULT_CURSOR_EPOCH
from history_replicator.domain.models import to_unix, to_utc_datetime
from history_replicator.exceptions import CursorPersistenceError
from history_replicator.infrastructure.checkpoint import CursorDocument, CursorStore
from history_replicator.infrastructure.observability import get_ingestion_logger

# Failures of the local file or S3 backends of CursorStore, plus unreadable documents
_STORE_ERRORS = (OSError, ValueError, KeyError, TypeError, ClientError, BotoCoreError)


class IngestionCursor:
    """
    Monotonic cursor over upstream time.

    ``advance`` never moves backward. Persistence is optional: without a
    store the cursor only lives for the process.
    """

    def __init__(
        self,
        last_fetch_time: datetime | int = DEFAULT_CURSOR_EPOCH,
        store: CursorStore | None = None,
        key: str = "cursors/unit_intervals.json",
    ):
        self.last_fetch_time: datetime = to_utc_datetime(last_fetch_time)
        self.store = store
        self.key = key
        self.total_records = 0
        self.log = get_ingestion_logger("cursor")

    @property
    def unix(self) -> int:
        return to_unix(self.last_fetch_time)

    def advance(self, new_time: datetime | int, records: int = 0) -> bool:
        """Move forward to ``new_time``. Returns False (and logs) if it would go back."""
        new_time = to_utc_datetime(new_time)
        if new_time < self.last_fetch_time:
            self.log.warning(
                "cursor_regression_ignored",
                current=self.unix,
                requested=to_unix(new_time),
            )
            return False
        self.last_fetch_time = new_time
        self.total_records += records
        return True

    @classmethod
    def load(
        cls,
        store: CursorStore | None,
        key: str = "cursors/unit_intervals.json",
        initial: int = DEFAULT_CURSOR_EPOCH,
    ) -> "IngestionCursor":
        """
        Restore from the store, or start at ``initial`` when nothing is persisted.

        Raises:
            CursorPersistenceError: The store exists but could not be read
        """
        if store is None:
            return cls(initial, key=key)

        logger = get_ingestion_logger("cursor")

        try:
            document = store.read(key)
        except _STORE_ERRORS as e:
            raise CursorPersistenceError(f"Failed to load cursor: {e}", key=key) from e
        if document is None:
            logger.info("cursor_initialized", last_fetch_time=initial)
            return cls(initial, store=store, key=key)

        cursor = cls(document.last_fetch_time, store=store, key=key)
        cursor.total_records = document.total_records
        logger.info("cursor_loaded", last_fetch_time=document.last_fetch_time)
        return cursor

    def save(self) -> None:
        """
        Write the current position (blocking).

        Raises:
            CursorPersistenceError: The store rejected the write
        """
        if self.store is None:
            return
        document = CursorDocument(
            last_fetch_time=self.unix,
            last_updated=datetime.now(UTC).isoformat(),
            total_records=self.total_records,
        )
        try:
            self.store.write_atomic(self.key, document)
        except _STORE_ERRORS as e:
            raise CursorPersistenceError(f"Failed to save cursor: {e}", key=self.key) from e

    async def persist(self) -> None:
        """``save`` off the event loop; S3 and file writes block."""
        await asyncio.to_thread(self.save)

    def __repr__(self) -> str:
        return f"<IngestionCursor last_fetch_time={self.unix}>"
