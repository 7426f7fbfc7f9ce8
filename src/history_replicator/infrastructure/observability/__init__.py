"""
Observability for the replicator: structured logs for every layer and timing /
record-count metrics around each store operation.
"""

from .logging import (
    get_api_logger,
    get_infrastructure_logger,
    get_ingestion_logger,
    get_replication_logger,
    get_storage_logger,
    setup_logging,
)
from .metrics import DatabaseOperation, OperationMetrics, configure_metrics_file

__all__ = [
    "setup_logging",
    "configure_metrics_file",
    "get_infrastructure_logger",
    "get_ingestion_logger",
    "get_replication_logger",
    "get_storage_logger",
    "get_api_logger",
    "DatabaseOperation",
    "OperationMetrics",
]
