"""Per-store outcomes of replicating one batch."""

from dataclasses import dataclass, field
from enum import Enum


class OutcomeStatus(str, Enum):
    WRITTEN = "written"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


class AggregationPolicy(str, Enum):
    """How per-store failures turn into the result of ``replicate``."""

    ALL_OR_NOTHING = "all_or_nothing"  # raise if any available store failed
    BEST_EFFORT = "best_effort"  # always return the report


@dataclass
class ReplicationOutcome:
    store_id: str
    status: OutcomeStatus
    written_count: int = 0
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED

    @property
    def available(self) -> bool:
        return self.status != OutcomeStatus.UNAVAILABLE


@dataclass
class ReplicationReport:
    """One outcome per adapter for a single batch."""

    batch_size: int = 0
    per_store: dict[str, ReplicationOutcome] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        """Unavailable stores count as success."""
        return not self.failed_stores

    @property
    def failed_stores(self) -> list[str]:
        return [s for s, o in self.per_store.items() if o.failed]

    @property
    def available_stores(self) -> int:
        return sum(1 for o in self.per_store.values() if o.available)

    @property
    def total_written(self) -> int:
        return sum(o.written_count for o in self.per_store.values())

    def summary(self) -> dict[str, str]:
        return {
            s: (f"{o.status.value}:{o.written_count}" if not o.failed else "failed")
            for s, o in self.per_store.items()
        }
