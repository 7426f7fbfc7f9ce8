"""Domain models shared by ingestion, replication and the read path."""

from .models import (
    Interval,
    IntervalHistoryResponse,
    MetaStats,
    ReadQuery,
    SortDirection,
    SortField,
    SortSpec,
    to_unix,
    to_utc_datetime,
)

__all__ = [
    "Interval",
    "IntervalHistoryResponse",
    "MetaStats",
    "ReadQuery",
    "SortDirection",
    "SortField",
    "SortSpec",
    "to_unix",
    "to_utc_datetime",
]
