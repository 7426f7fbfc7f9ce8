from .coordinator import ReplicationCoordinator
from .models import (
    AggregationPolicy,
    OutcomeStatus,
    ReplicationOutcome,
    ReplicationReport,
)

__all__ = [
    "AggregationPolicy",
    "OutcomeStatus",
    "ReplicationCoordinator",
    "ReplicationOutcome",
    "ReplicationReport",
]
