"""SurrealDB remote query-language store adapter.

Records in ``unit_intervals`` keep the upstream camelCase layout with unix
seconds: ``{startTime, endTime, count, units}``. Existence is checked with a
SELECT on (startTime, endTime) before each CREATE.
"""

import re
from typing import Any

from history_replicator.domain.models import (
    Interval,
    ReadQuery,
    SortDirection,
    to_unix,
)

from .base import BaseStoreAdapter

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

SORT_FIELDS = {
    "start_time": "startTime",
    "count": "count",
    "units": "units",
}


class SurrealStoreAdapter(BaseStoreAdapter):
    """Remote query store backed by a SurrealHttpClient."""

    store_id = "surrealdb"
    supports_native_filter_sort = True

    def __init__(self, client: Any | None, table: str = "unit_intervals"):
        """
        Args:
            client: SurrealHttpClient (or None when SurrealDB is not configured)
            table: Target table name
        """
        super().__init__(client)
        if not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self.table = table

    async def _write_batch(self, batch: list[Interval]) -> int:
        client = self.handle
        exists_sql = (
            f"SELECT id FROM {self.table} "
            f"WHERE startTime = <int>$start AND endTime = <int>$end LIMIT 1;"
        )
        create_sql = (
            f"CREATE {self.table} CONTENT {{"
            f"startTime: <int>$start, endTime: <int>$end, "
            f"count: <int>$count, units: <int>$units}};"
        )

        stored_count = 0
        for interval in batch:
            key = {
                "start": to_unix(interval.start_time),
                "end": to_unix(interval.end_time),
            }
            (existing,) = await client.query(exists_sql, key)
            if existing:
                continue
            await client.query(
                create_sql, {**key, "count": interval.count, "units": interval.units}
            )
            stored_count += 1
        return stored_count

    def build_select(self, query: ReadQuery) -> tuple[str, dict[str, Any]]:
        conditions: list[str] = []
        variables: dict[str, Any] = {}

        if query.time_range is not None:
            start, end = query.time_range
            variables["range_start"] = to_unix(start)
            variables["range_end"] = to_unix(end)
            conditions.append(
                "startTime >= <int>$range_start AND endTime <= <int>$range_end"
            )

        if query.min_units is not None:
            variables["min_units"] = query.min_units
            conditions.append("units > <int>$min_units")

        sql = f"SELECT * FROM {self.table}"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)

        direction = "DESC" if query.sort.direction == SortDirection.DESC else "ASC"
        sort_field = SORT_FIELDS[query.sort.field.value]
        sql += f" ORDER BY {sort_field} {direction}"
        if sort_field != "startTime":
            sql += f", startTime {direction}"

        # limit/offset are validated ints
        sql += f" LIMIT {int(query.limit)} START {int(query.offset)};"
        return sql, variables

    async def _read(self, query: ReadQuery) -> list[Interval]:
        sql, variables = self.build_select(query)
        (rows,) = await self.handle.query(sql, variables)
        return [Interval.model_validate(row) for row in rows or []]

    async def close(self) -> None:
        if self._handle is not None:
            await self._handle.close()
        await super().close()
