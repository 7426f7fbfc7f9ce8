"""PostgreSQL relational store adapter (asyncpg).

Table Schema:
  unit_intervals:
    - id: BIGSERIAL PRIMARY KEY
    - start_time: TIMESTAMPTZ NOT NULL
    - end_time: TIMESTAMPTZ NOT NULL
    - count: BIGINT NOT NULL
    - units: BIGINT NOT NULL

Deduplication is a SELECT on (start_time, end_time) followed by an INSERT.
Without a unique constraint on the pair, two concurrent writers can both
pass the check.
"""

import re
from typing import Any

from history_replicator.domain.models import Interval, ReadQuery, SortDirection

from .base import BaseStoreAdapter

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

SORT_COLUMNS = {
    "start_time": "start_time",
    "count": "count",
    "units": "units",
}


class PostgresStoreAdapter(BaseStoreAdapter):
    """Relational store backed by an asyncpg connection pool."""

    store_id = "postgres"
    supports_native_filter_sort = True

    def __init__(self, pool: Any | None, table: str = "unit_intervals"):
        """
        Args:
            pool: asyncpg.Pool (or None when Postgres is not configured)
            table: Target table name
        """
        super().__init__(pool)
        if not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self.table = table

    async def _write_batch(self, batch: list[Interval]) -> int:
        pool = self.handle
        exists_query = (
            f"SELECT 1 FROM {self.table} WHERE start_time = $1 AND end_time = $2 LIMIT 1"
        )
        insert_query = (
            f"INSERT INTO {self.table} (start_time, end_time, count, units) "
            f"VALUES ($1, $2, $3, $4)"
        )

        stored_count = 0
        for interval in batch:
            exists = await pool.fetchval(
                exists_query, interval.start_time, interval.end_time
            )
            if exists:
                continue
            await pool.execute(
                insert_query,
                interval.start_time,
                interval.end_time,
                interval.count,
                interval.units,
            )
            stored_count += 1
        return stored_count

    def build_select(self, query: ReadQuery) -> tuple[str, list[Any]]:
        """Build the parameterized SELECT for a read query."""
        conditions: list[str] = []
        params: list[Any] = []

        if query.time_range is not None:
            start, end = query.time_range
            params.extend([start, end])
            conditions.append(
                f"start_time >= ${len(params) - 1} AND end_time <= ${len(params)}"
            )

        if query.min_units is not None:
            params.append(query.min_units)
            conditions.append(f"units > ${len(params)}")

        sql = f"SELECT id, start_time, end_time, count, units FROM {self.table}"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)

        column = SORT_COLUMNS[query.sort.field.value]
        direction = "DESC" if query.sort.direction == SortDirection.DESC else "ASC"
        # Tie-break on start_time so pages are stable for non-unique sort columns
        sql += f" ORDER BY {column} {direction}"
        if column != "start_time":
            sql += f", start_time {direction}"

        params.extend([query.limit, query.offset])
        sql += f" LIMIT ${len(params) - 1} OFFSET ${len(params)}"
        return sql, params

    async def _read(self, query: ReadQuery) -> list[Interval]:
        sql, params = self.build_select(query)
        rows = await self.handle.fetch(sql, *params)
        return [
            Interval(
                id=row["id"],
                start_time=row["start_time"],
                end_time=row["end_time"],
                count=row["count"],
                units=row["units"],
            )
            for row in rows
        ]

    async def close(self) -> None:
        if self._handle is not None:
            await self._handle.close()
        await super().close()
