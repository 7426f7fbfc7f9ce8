"""Upstream ingestion: fetcher, retry policy, cursor and polling loop."""

from .cursor import IngestionCursor
from .fetcher import UpstreamFetcher
from .loop import CycleResult, IngestionLoop, LoopState
from .retry import RetryPolicy

__all__ = [
    "CycleResult",
    "IngestionCursor",
    "IngestionLoop",
    "LoopState",
    "RetryPolicy",
    "UpstreamFetcher",
]
