"""Storage layer: store adapters and the read service on top of them."""

from .adapters import StoreAdapter
from .query import ReadPage, ReadService, parse_date_range

__all__ = ["ReadPage", "ReadService", "StoreAdapter", "parse_date_range"]
