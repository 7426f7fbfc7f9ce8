"""
Shared fixtures: in-memory stand-ins for every backend client handle, plus
interval builders. No live database or network is needed.
"""

import itertools
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any

import pytest

from history_replicator.domain.models import Interval


# ---------------------------------------------------------------------------
# Interval builders
# ---------------------------------------------------------------------------


def build_intervals(
    n: int, start: int = 0, step: int = 3600, count0: int = 10, units0: int = 100
) -> list[Interval]:
    """``n`` consecutive intervals with non-decreasing count/units."""
    return [
        Interval(
            start_time=start + i * step,
            end_time=start + (i + 1) * step,
            count=count0 + i,
            units=units0 + i * 10,
        )
        for i in range(n)
    ]


@pytest.fixture
def make_intervals() -> Callable[..., list[Interval]]:
    return build_intervals


# ---------------------------------------------------------------------------
# asyncpg pool
# ---------------------------------------------------------------------------


class FakePool:
    """Subset of asyncpg.Pool used by the Postgres adapter."""

    def __init__(self):
        self.rows: list[dict[str, Any]] = []
        self.fetch_calls: list[tuple[str, tuple]] = []
        self.closed = False
        self.fail_with: Exception | None = None
        self._ids = itertools.count(1)

    async def fetchval(self, sql: str, start, end):
        if self.fail_with:
            raise self.fail_with
        exists = any(r["start_time"] == start and r["end_time"] == end for r in self.rows)
        return 1 if exists else None

    async def execute(self, sql: str, *args):
        if self.fail_with:
            raise self.fail_with
        start, end, count, units = args
        self.rows.append(
            {
                "id": next(self._ids),
                "start_time": start,
                "end_time": end,
                "count": count,
                "units": units,
            }
        )
        return "INSERT 0 1"

    async def fetch(self, sql: str, *params):
        if self.fail_with:
            raise self.fail_with
        self.fetch_calls.append((sql, params))
        return list(self.rows)

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool()


# ---------------------------------------------------------------------------
# motor collection
# ---------------------------------------------------------------------------


def _matches(doc: dict, mongo_filter: dict) -> bool:
    for field, cond in mongo_filter.items():
        value = doc.get(field)
        if isinstance(cond, dict):
            if "$gte" in cond and not value >= cond["$gte"]:
                return False
            if "$lte" in cond and not value <= cond["$lte"]:
                return False
            if "$gt" in cond and not value > cond["$gt"]:
                return False
        elif value != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, docs: list[dict]):
        self._docs = docs
        self._skip = 0
        self._limit = 0

    def sort(self, keys: list[tuple[str, int]]):
        for field, direction in reversed(keys):
            self._docs.sort(key=lambda d: d[field], reverse=direction < 0)
        return self

    def skip(self, n: int):
        self._skip = n
        return self

    def limit(self, n: int):
        self._limit = n
        return self

    async def to_list(self, length: int | None = None):
        docs = self._docs[self._skip :]
        if self._limit:
            docs = docs[: self._limit]
        return docs


class FakeCollection:
    """Subset of AsyncIOMotorCollection used by the Mongo adapter."""

    def __init__(self):
        self.docs: list[dict[str, Any]] = []
        self.fail_with: Exception | None = None
        self._ids = itertools.count(1)

    async def find_one(self, mongo_filter: dict):
        if self.fail_with:
            raise self.fail_with
        return next((d for d in self.docs if _matches(d, mongo_filter)), None)

    async def insert_one(self, doc: dict):
        if self.fail_with:
            raise self.fail_with
        self.docs.append({"_id": next(self._ids), **doc})

    def find(self, mongo_filter: dict) -> FakeCursor:
        return FakeCursor([d for d in self.docs if _matches(d, mongo_filter)])


@pytest.fixture
def fake_collection() -> FakeCollection:
    return FakeCollection()


# ---------------------------------------------------------------------------
# plyvel.DB / rocksdict.Rdict
# ---------------------------------------------------------------------------


class FakeOrderedKV:
    """Sorted bytes → bytes map exposing both the plyvel and rocksdict calls we use."""

    def __init__(self):
        self.data: dict[bytes, bytes] = {}
        self.flushes = 0
        self.synced_batches = 0
        self.closed = False

    def get(self, key: bytes):
        return self.data.get(key)

    def put(self, key: bytes, value: bytes):
        self.data[key] = value

    # rocksdict
    def flush(self):
        self.flushes += 1

    def items(self):
        yield from sorted(self.data.items())

    # plyvel
    @contextmanager
    def write_batch(self, sync: bool = False):
        staged: dict[bytes, bytes] = {}

        class _Batch:
            def put(self_inner, key, value):
                staged[key] = value

        yield _Batch()
        self.data.update(staged)
        if sync:
            self.synced_batches += 1

    @contextmanager
    def iterator(self):
        yield iter(sorted(self.data.items()))

    def close(self):
        self.closed = True


@pytest.fixture
def fake_kv() -> FakeOrderedKV:
    return FakeOrderedKV()


# ---------------------------------------------------------------------------
# SurrealDB HTTP client
# ---------------------------------------------------------------------------


class FakeSurrealClient:
    """Records statements; understands the adapter's SELECT/CREATE shapes."""

    def __init__(self):
        self.records: list[dict[str, Any]] = []
        self.statements: list[tuple[str, dict]] = []
        self.closed = False

    async def query(self, sql: str, variables: dict | None = None) -> list[Any]:
        variables = variables or {}
        self.statements.append((sql, variables))
        if sql.startswith("SELECT id"):
            found = [
                {"id": r["id"]}
                for r in self.records
                if r["startTime"] == variables["start"] and r["endTime"] == variables["end"]
            ]
            return [found]
        if sql.startswith("CREATE"):
            record = {
                "id": f"unit_intervals:{len(self.records) + 1}",
                "startTime": variables["start"],
                "endTime": variables["end"],
                "count": variables["count"],
                "units": variables["units"],
            }
            self.records.append(record)
            return [[record]]
        return [list(self.records)]

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_surreal() -> FakeSurrealClient:
    return FakeSurrealClient()


@pytest.fixture
def kv_factory() -> Callable[[], FakeOrderedKV]:
    """Build extra independent KV fakes (one per adapter)."""
    return FakeOrderedKV
