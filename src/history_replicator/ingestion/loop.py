"""
Incremental ingestion loop.

Each cycle fetches the next page after the cursor, replicates it to every
store and only then advances (and persists) the cursor. Cycles are strictly
sequential.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from history_replicator.exceptions import CursorPersistenceError, FetchError, ReplicationError
from history_replicator.infrastructure.observability import get_ingestion_logger
from history_replicator.replication.coordinator import ReplicationCoordinator
from history_replicator.replication.models import ReplicationReport

from .cursor import IngestionCursor
from .fetcher import UpstreamFetcher


class LoopState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"


@dataclass
class CycleResult:
    """What a single ingestion cycle did."""

    fetched: int = 0
    written: int = 0
    advanced: bool = False
    cursor: int = 0
    error: str | None = None
    report: ReplicationReport | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class IngestionLoop:
    """Drive fetch → replicate → advance cursor."""

    def __init__(
        self,
        fetcher: UpstreamFetcher,
        coordinator: ReplicationCoordinator,
        cursor: IngestionCursor,
        batch_size: int = 400,
        poll_interval: float = 3.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.fetcher = fetcher
        self.coordinator = coordinator
        self.cursor = cursor
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.state = LoopState.IDLE
        self._sleep = sleep
        self.log = get_ingestion_logger("loop", resource=fetcher.config.resource)

    async def run_cycle(self) -> CycleResult:
        """
        Run one fetch/replicate/advance cycle.

        Fetch, replication and cursor persistence failures are reported in the
        result. The cursor only moves once every store accepted the batch.

        Raises:
            RuntimeError: A cycle is already running
        """
        if self.state is LoopState.FETCHING:
            raise RuntimeError("Ingestion cycle already in progress")

        self.state = LoopState.FETCHING
        try:
            return await self._cycle()
        finally:
            self.state = LoopState.IDLE

    async def _cycle(self) -> CycleResult:
        result = CycleResult(cursor=self.cursor.unix)

        try:
            batch = await self.fetcher.fetch(self.cursor.last_fetch_time, self.batch_size)
        except FetchError as e:
            self.log.error("fetch_failed", cursor=self.cursor.unix, error=str(e))
            result.error = str(e)
            return result

        result.fetched = len(batch)
        if not batch:
            self.log.info("no_new_intervals", cursor=self.cursor.unix)
            return result

        self.log.info("Storing started", batch=len(batch))
        try:
            report = await self.coordinator.replicate(batch)
        except ReplicationError as e:
            self.log.error(
                "replication_failed",
                cursor=self.cursor.unix,
                failed_stores=e.report.failed_stores,
                error=str(e),
            )
            result.report = e.report
            result.written = e.report.total_written
            result.error = str(e)
            return result

        result.report = report
        result.written = report.total_written
        result.advanced = self.cursor.advance(batch[-1].end_time, records=len(batch))
        result.cursor = self.cursor.unix

        # a failed persist keeps the in-memory advance; the next save catches up
        try:
            await self.cursor.persist()
        except CursorPersistenceError as e:
            self.log.error("cursor_persist_failed", cursor=result.cursor, error=str(e))
            result.error = str(e)
            return result

        self.log.info(
            f"✅ Stored {len(batch)} intervals",
            written=result.written,
            last_fetch_time=result.cursor,
        )
        return result

    async def run_forever(self, stop_event: asyncio.Event | None = None) -> None:
        """Run cycles until ``stop_event`` is set, sleeping poll_interval in between."""
        self.log.info(
            "ingestion_started",
            cursor=self.cursor.unix,
            batch_size=self.batch_size,
            poll_interval=self.poll_interval,
        )
        while stop_event is None or not stop_event.is_set():
            try:
                await self.run_cycle()
            except Exception as e:
                self.log.exception("cycle_crashed", error=str(e))

            if stop_event is not None and stop_event.is_set():
                break
            await self._sleep(self.poll_interval)

        self.log.info("ingestion_stopped", cursor=self.cursor.unix)

    async def catch_up(self, max_cycles: int | None = None) -> list[CycleResult]:
        """
        Run cycles back to back until a short page says upstream is exhausted.

        Stops early on a failed cycle or after ``max_cycles``.
        """
        results: list[CycleResult] = []
        while max_cycles is None or len(results) < max_cycles:
            result = await self.run_cycle()
            results.append(result)
            if not result.ok:
                self.log.warning("catch_up_stopped_on_error", cycles=len(results))
                break
            if result.fetched < self.batch_size:
                break

        self.log.info(
            "catch_up_finished",
            cycles=len(results),
            fetched=sum(r.fetched for r in results),
            cursor=self.cursor.unix,
        )
        return results

    async def fetch_latest(self) -> CycleResult:
        """Fetch the most recent hour and replicate it. The cursor is not touched."""
        result = CycleResult(cursor=self.cursor.unix)
        try:
            batch = await self.fetcher.fetch_latest_hour()
        except FetchError as e:
            self.log.error("fetch_latest_failed", error=str(e))
            result.error = str(e)
            return result

        result.fetched = len(batch)
        if not batch:
            return result

        try:
            report = await self.coordinator.replicate(batch)
        except ReplicationError as e:
            result.report = e.report
            result.written = e.report.total_written
            result.error = str(e)
            return result

        result.report = report
        result.written = report.total_written
        self.log.info("latest_hour_stored", written=result.written)
        return result
