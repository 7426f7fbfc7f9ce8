"""
Tests for the query-capable store adapters (Postgres, MongoDB, SurrealDB) and
the behaviour every adapter inherits from BaseStoreAdapter.
"""

import pytest

from history_replicator.domain.models import (
    Interval,
    ReadQuery,
    SortDirection,
    SortField,
    SortSpec,
)
from history_replicator.exceptions import (
    StoreReadError,
    StoreUnavailableError,
    StoreWriteError,
)
from history_replicator.storage.adapters import (
    MongoStoreAdapter,
    PostgresStoreAdapter,
    StoreAdapter,
    SurrealStoreAdapter,
    dedupe_batch,
)


class TestBaseBehaviour:
    @pytest.mark.asyncio
    async def test_unavailable_adapter_writes_nothing(self, make_intervals):
        """
        Test 1: A None handle is a valid state; write returns 0.
        """
        adapter = PostgresStoreAdapter(None)

        assert not adapter.is_available
        assert await adapter.write(make_intervals(3)) == 0

    @pytest.mark.asyncio
    async def test_unavailable_adapter_read_raises(self):
        adapter = MongoStoreAdapter(None)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await adapter.read(ReadQuery())
        assert exc_info.value.store_id == "mongodb"

    @pytest.mark.asyncio
    async def test_empty_batch(self, fake_pool):
        assert await PostgresStoreAdapter(fake_pool).write([]) == 0

    def test_adapters_satisfy_protocol(self, fake_pool, fake_collection, fake_surreal):
        for adapter in (
            PostgresStoreAdapter(fake_pool),
            MongoStoreAdapter(fake_collection),
            SurrealStoreAdapter(fake_surreal),
        ):
            assert isinstance(adapter, StoreAdapter)
            assert adapter.supports_native_filter_sort

    def test_dedupe_batch_keeps_first_occurrence(self):
        a = Interval(start_time=0, end_time=3600, count=1, units=1)
        b = Interval(start_time=0, end_time=3600, count=9, units=9)
        c = Interval(start_time=3600, end_time=7200, count=2, units=2)

        assert dedupe_batch([a, b, c]) == [a, c]

    def test_invalid_table_name_rejected(self, fake_pool):
        with pytest.raises(ValueError):
            PostgresStoreAdapter(fake_pool, table="unit_intervals; DROP TABLE x")


class TestPostgresAdapter:
    @pytest.mark.asyncio
    async def test_write_is_idempotent(self, fake_pool, make_intervals):
        """
        Test 2: Existence check skips natural keys already stored.
        """
        adapter = PostgresStoreAdapter(fake_pool)
        batch = make_intervals(3)

        assert await adapter.write(batch) == 3
        assert await adapter.write(batch) == 0
        assert len(fake_pool.rows) == 3

    @pytest.mark.asyncio
    async def test_duplicates_in_one_batch_count_once(self, fake_pool, make_intervals):
        adapter = PostgresStoreAdapter(fake_pool)
        batch = make_intervals(2)

        assert await adapter.write(batch + batch) == 2

    @pytest.mark.asyncio
    async def test_backend_error_is_wrapped(self, fake_pool, make_intervals):
        """
        Test 3: Driver exceptions surface as StoreWriteError chained to the cause.
        """
        fake_pool.fail_with = ConnectionResetError("connection lost")
        adapter = PostgresStoreAdapter(fake_pool)

        with pytest.raises(StoreWriteError) as exc_info:
            await adapter.write(make_intervals(1))
        assert exc_info.value.store_id == "postgres"
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)

    def test_build_select_full_query(self, fake_pool):
        """
        Test 4: Filters, sort with tie-break and pagination are parameterized.
        """
        adapter = PostgresStoreAdapter(fake_pool)
        query = ReadQuery(
            time_range=(0, 7200),
            min_units=120,
            sort=SortSpec(field=SortField.UNITS, direction=SortDirection.DESC),
            limit=10,
            offset=20,
        )

        sql, params = adapter.build_select(query)

        assert "WHERE start_time >= $1 AND end_time <= $2 AND units > $3" in sql
        assert "ORDER BY units DESC, start_time DESC" in sql
        assert sql.endswith("LIMIT $4 OFFSET $5")
        assert params[2:] == [120, 10, 20]

    def test_build_select_defaults(self, fake_pool):
        sql, params = PostgresStoreAdapter(fake_pool).build_select(ReadQuery())

        assert "WHERE" not in sql
        assert "ORDER BY start_time ASC LIMIT $1 OFFSET $2" in sql
        assert params == [50, 0]

    @pytest.mark.asyncio
    async def test_read_maps_rows(self, fake_pool, make_intervals):
        adapter = PostgresStoreAdapter(fake_pool)
        await adapter.write(make_intervals(2))

        results = await adapter.read(ReadQuery(limit=5))

        assert [r.id for r in results] == ["1", "2"]
        assert results[0].units == 100

    @pytest.mark.asyncio
    async def test_read_error_is_wrapped(self, fake_pool):
        fake_pool.fail_with = TimeoutError("slow")
        with pytest.raises(StoreReadError):
            await PostgresStoreAdapter(fake_pool).read(ReadQuery())

    @pytest.mark.asyncio
    async def test_close_releases_pool(self, fake_pool):
        adapter = PostgresStoreAdapter(fake_pool)
        await adapter.close()

        assert fake_pool.closed
        assert not adapter.is_available


class TestMongoAdapter:
    @pytest.mark.asyncio
    async def test_write_sets_created_at_and_dedupes(self, fake_collection, make_intervals):
        adapter = MongoStoreAdapter(fake_collection)
        batch = make_intervals(3)

        assert await adapter.write(batch) == 3
        assert await adapter.write(batch[1:]) == 0
        assert all("created_at" in d for d in fake_collection.docs)

    def test_build_filter_and_sort(self):
        query = ReadQuery(
            time_range=(0, 7200),
            min_units=5,
            sort=SortSpec(field=SortField.COUNT, direction=SortDirection.DESC),
        )

        mongo_filter = MongoStoreAdapter.build_filter(query)

        assert set(mongo_filter) == {"start_time", "end_time", "units"}
        assert mongo_filter["units"] == {"$gt": 5}
        assert MongoStoreAdapter.build_sort(query) == [("count", -1), ("start_time", -1)]

    @pytest.mark.asyncio
    async def test_read_filters_sorts_and_paginates(self, fake_collection, make_intervals):
        """
        Test 5: Read honors filter, descending sort and offset/limit.
        """
        adapter = MongoStoreAdapter(fake_collection)
        await adapter.write(make_intervals(10))

        query = ReadQuery(
            min_units=120,  # drops the first three (100, 110, 120)
            sort=SortSpec(field=SortField.UNITS, direction=SortDirection.DESC),
            limit=3,
            offset=1,
        )
        results = await adapter.read(query)

        assert [r.units for r in results] == [180, 170, 160]
        assert all(r.id is not None for r in results)


class TestSurrealAdapter:
    @pytest.mark.asyncio
    async def test_write_checks_then_creates(self, fake_surreal, make_intervals):
        adapter = SurrealStoreAdapter(fake_surreal)
        batch = make_intervals(2)

        assert await adapter.write(batch) == 2
        assert await adapter.write(batch) == 0
        assert [r["startTime"] for r in fake_surreal.records] == [0, 3600]

        creates = [s for s, _ in fake_surreal.statements if s.startswith("CREATE")]
        assert len(creates) == 2

    def test_build_select(self, fake_surreal):
        adapter = SurrealStoreAdapter(fake_surreal)
        query = ReadQuery(
            time_range=(0, 7200),
            min_units=120,
            sort=SortSpec(field=SortField.START_TIME, direction=SortDirection.DESC),
            limit=10,
            offset=20,
        )

        sql, variables = adapter.build_select(query)

        assert "startTime >= <int>$range_start AND endTime <= <int>$range_end" in sql
        assert "units > <int>$min_units" in sql
        assert "ORDER BY startTime DESC LIMIT 10 START 20;" in sql
        assert variables == {"range_start": 0, "range_end": 7200, "min_units": 120}

    @pytest.mark.asyncio
    async def test_read_maps_camel_case_records(self, fake_surreal, make_intervals):
        adapter = SurrealStoreAdapter(fake_surreal)
        await adapter.write(make_intervals(2))

        results = await adapter.read(ReadQuery())

        assert results[1].end_time.timestamp() == 7200
        assert results[0].id == "unit_intervals:1"

    @pytest.mark.asyncio
    async def test_close_closes_client(self, fake_surreal):
        adapter = SurrealStoreAdapter(fake_surreal)
        await adapter.close()
        assert fake_surreal.closed
