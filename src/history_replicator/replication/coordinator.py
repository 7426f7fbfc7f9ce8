"""
Replication coordinator.

Fans one batch out to every store adapter concurrently and joins all of them:
a failing or crashing adapter never cancels its siblings, and its exception is
turned into a ``failed`` outcome instead of propagating raw.
"""

import asyncio
import copy
from collections.abc import Mapping, Sequence

from history_replicator.domain.models import Interval
from history_replicator.exceptions import ReplicationError
from history_replicator.infrastructure.observability import get_replication_logger
from history_replicator.storage.adapters.base import StoreAdapter

from .models import (
    AggregationPolicy,
    OutcomeStatus,
    ReplicationOutcome,
    ReplicationReport,
)


class ReplicationCoordinator:
    """Write each batch to all configured stores in parallel."""

    def __init__(
        self,
        adapters: Mapping[str, StoreAdapter] | Sequence[StoreAdapter],
        policy: AggregationPolicy = AggregationPolicy.ALL_OR_NOTHING,
    ):
        if isinstance(adapters, Mapping):
            adapters = list(adapters.values())
        self.adapters: list[StoreAdapter] = list(adapters)
        self.policy = policy
        self.log = get_replication_logger(policy=policy.value)

    async def replicate(self, intervals: Sequence[Interval]) -> ReplicationReport:
        """
        Write ``intervals`` to every adapter.

        Returns:
            ReplicationReport with one outcome per adapter

        Raises:
            ReplicationError: ALL_OR_NOTHING policy and at least one available
                store failed. Successful peers keep their writes.
        """
        batch = list(intervals)
        report = ReplicationReport(batch_size=len(batch))

        active: list[StoreAdapter] = []
        for adapter in self.adapters:
            if adapter.is_available:
                active.append(adapter)
            else:
                report.per_store[adapter.store_id] = ReplicationOutcome(
                    adapter.store_id, OutcomeStatus.UNAVAILABLE
                )

        # every adapter gets its own copy of the batch
        results = await asyncio.gather(
            *(adapter.write(copy.deepcopy(batch)) for adapter in active),
            return_exceptions=True,
        )

        for adapter, result in zip(active, results):
            if isinstance(result, BaseException):
                self.log.error(
                    "store_write_failed",
                    store=adapter.store_id,
                    error_type=type(result).__name__,
                    error=str(result),
                )
                report.per_store[adapter.store_id] = ReplicationOutcome(
                    adapter.store_id, OutcomeStatus.FAILED, error=str(result)
                )
            else:
                report.per_store[adapter.store_id] = ReplicationOutcome(
                    adapter.store_id, OutcomeStatus.WRITTEN, written_count=result
                )

        if report.available_stores == 0:
            self.log.warning(
                "⚠️ No store is available, batch was not persisted anywhere",
                batch=len(batch),
            )

        self.log.info(
            "batch_replicated",
            batch=len(batch),
            total_written=report.total_written,
            outcomes=report.summary(),
        )

        if self.policy == AggregationPolicy.ALL_OR_NOTHING and not report.succeeded:
            raise ReplicationError(report)
        return report
