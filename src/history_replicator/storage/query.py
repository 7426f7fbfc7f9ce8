"""Read service: turns request parameters into a ReadQuery and runs it on a store.

Responsibilities:
- clamp page size and compute ``offset = page * limit``
- resolve ``date_range`` (``<n>h|<n>d|<n>w``) or explicit start/end bounds
- flag sort requests a scan-only store cannot honor (warn, or reject in strict mode)
- compute MetaStats for the returned page
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from history_replicator.config.state import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from history_replicator.domain.models import (
    Interval,
    MetaStats,
    ReadQuery,
    SortDirection,
    SortField,
    SortSpec,
    to_utc_datetime,
)
from history_replicator.exceptions import (
    InvalidQueryError,
    UnknownStoreError,
    UnsupportedQueryError,
)
from history_replicator.infrastructure.observability import get_storage_logger

from .adapters.base import StoreAdapter

NO_DATA_MESSAGE = "no data found in the database for the given params"

_DATE_RANGE = re.compile(r"^\s*(\d+)\s*([hdw])\s*$", re.IGNORECASE)
_RANGE_UNITS = {"h": "hours", "d": "days", "w": "weeks"}


def parse_date_range(value: str) -> timedelta:
    """Parse ``24h`` / ``7d`` / ``2w`` into a timedelta.

    Raises:
        InvalidQueryError: Unrecognized format or a zero-length range
    """
    match = _DATE_RANGE.match(value or "")
    if not match:
        raise InvalidQueryError(
            f"Invalid date_range {value!r}: expected <n>h, <n>d or <n>w"
        )
    amount, unit = int(match.group(1)), match.group(2).lower()
    if amount == 0:
        raise InvalidQueryError(f"Invalid date_range {value!r}: must be positive")
    return timedelta(**{_RANGE_UNITS[unit]: amount})


@dataclass
class ReadPage:
    """One page of results from a single store."""

    store_id: str
    intervals: list[Interval]
    warnings: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.intervals

    @property
    def meta_stats(self) -> MetaStats | None:
        if self.is_empty:
            return None
        return MetaStats.from_intervals(self.intervals)

    def to_api(self) -> dict[str, Any]:
        """Response body: intervals + meta_stats, or the no-data envelope."""
        if self.is_empty:
            return {"success": True, "data": NO_DATA_MESSAGE}

        body: dict[str, Any] = {
            "intervals": [interval.to_api() for interval in self.intervals],
            "meta_stats": self.meta_stats.to_api(),
        }
        if self.warnings:
            body["warnings"] = list(self.warnings)
        return body


class ReadService:
    """Run read queries against the registered store adapters."""

    def __init__(
        self,
        adapters: Mapping[str, StoreAdapter],
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
        strict_sort: bool = False,
    ):
        self.adapters = dict(adapters)
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.strict_sort = strict_sort
        self.log = get_storage_logger("read-service")

    def availability(self) -> dict[str, bool]:
        return {store_id: a.is_available for store_id, a in self.adapters.items()}

    def build_query(
        self,
        page: int = 0,
        limit: int | None = None,
        start: int | None = None,
        end: int | None = None,
        date_range: str | None = None,
        units_gt: int | None = None,
        sort_by: str | None = None,
        order: str | None = None,
        now: datetime | None = None,
    ) -> ReadQuery:
        """Build a ReadQuery from raw request parameters.

        ``date_range`` wins over ``start``/``end``. An open ``end`` means now,
        an open ``start`` means the unix epoch.

        Raises:
            InvalidQueryError: Negative page/limit, bad date_range, start after end
        """
        if page < 0:
            raise InvalidQueryError(f"page must be >= 0, got {page}")
        if limit is None:
            limit = self.default_page_size
        if limit < 1:
            raise InvalidQueryError(f"limit must be >= 1, got {limit}")
        if units_gt is not None and units_gt < 0:
            raise InvalidQueryError(f"units_gt must be >= 0, got {units_gt}")
        limit = min(limit, self.max_page_size)

        now = now or datetime.now(UTC)
        time_range: tuple[datetime, datetime] | None = None
        if date_range:
            time_range = (now - parse_date_range(date_range), now)
        elif start is not None or end is not None:
            range_start = to_utc_datetime(start if start is not None else 0)
            range_end = to_utc_datetime(end) if end is not None else now
            if range_start > range_end:
                raise InvalidQueryError(
                    f"start ({start}) must not be after end ({end})"
                )
            time_range = (range_start, range_end)

        return ReadQuery(
            time_range=time_range,
            min_units=units_gt,
            sort=SortSpec(field=SortField.parse(sort_by), direction=SortDirection.parse(order)),
            limit=limit,
            offset=page * limit,
        )

    def get_adapter(self, store_id: str) -> StoreAdapter:
        try:
            return self.adapters[store_id]
        except KeyError:
            raise UnknownStoreError(
                store_id,
                f"unknown store; expected one of {', '.join(sorted(self.adapters))}",
            ) from None

    async def read(self, store_id: str, query: ReadQuery) -> ReadPage:
        """Read one page from a store.

        Raises:
            UnknownStoreError: store_id is not registered
            UnsupportedQueryError: strict mode and the store cannot honor the sort
            StoreUnavailableError / StoreReadError: from the adapter
        """
        adapter = self.get_adapter(store_id)
        warnings: list[str] = []

        if not adapter.supports_native_filter_sort and not query.sort.is_natural_order:
            message = (
                f"{store_id} returns records in key order (start_time asc); "
                f"sort by {query.sort.field.value} {query.sort.direction.value} "
                f"was not applied"
            )
            if self.strict_sort:
                raise UnsupportedQueryError(store_id, message)
            warnings.append(message)

        intervals = await adapter.read(query)
        self.log.debug(
            "page_read",
            store=store_id,
            returned=len(intervals),
            limit=query.limit,
            offset=query.offset,
        )
        return ReadPage(store_id=store_id, intervals=intervals, warnings=warnings)
