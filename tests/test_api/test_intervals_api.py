"""
Tests for the FastAPI read service: response bodies, the no-data envelope and
structured error envelopes.
"""

import pytest
from fastapi.testclient import TestClient

from history_replicator.domain.models import to_unix
from history_replicator.storage.adapters import (
    LevelDBStoreAdapter,
    MongoStoreAdapter,
    PostgresStoreAdapter,
)
from history_replicator.storage.adapters.kv import encode_interval
from history_replicator.storage.query import NO_DATA_MESSAGE, ReadService
from history_replicator_api.main import create_app

EPOCH = 1648771200


@pytest.fixture
def seeded_kv(fake_kv, make_intervals):
    intervals = make_intervals(100, start=EPOCH)
    for interval in intervals:
        fake_kv.put(interval.kv_key(), encode_interval(interval))
    return intervals


@pytest.fixture
def client(fake_kv, fake_pool, seeded_kv):
    service = ReadService(
        {
            "leveldb": LevelDBStoreAdapter(fake_kv),
            "postgres": PostgresStoreAdapter(fake_pool),
            "mongodb": MongoStoreAdapter(None),
        }
    )
    with TestClient(create_app(read_service=service)) as test_client:
        yield test_client


class TestIntervalsEndpoint:
    def test_page_and_meta_stats(self, client, seeded_kv):
        """
        Test 1: page=2&limit=10 → records 21..30 with matching meta_stats.
        """
        resp = client.get("/intervals/leveldb", params={"page": 2, "limit": 10})

        assert resp.status_code == 200
        body = resp.json()
        expected = seeded_kv[20:30]
        assert [i["startTime"] for i in body["intervals"]] == [
            to_unix(i.start_time) for i in expected
        ]
        assert body["meta_stats"] == {
            "startTime": to_unix(expected[0].start_time),
            "endTime": to_unix(expected[-1].end_time),
            "startCount": expected[0].count,
            "endCount": expected[-1].count,
            "startUnits": expected[0].units,
            "endUnits": expected[-1].units,
        }

    def test_units_filter_and_range(self, client):
        resp = client.get(
            "/intervals/leveldb",
            params={"start": EPOCH, "end": EPOCH + 5 * 3600, "units_gt": 120},
        )

        assert [i["units"] for i in resp.json()["intervals"]] == [130, 140]

    def test_no_data_envelope(self, client):
        resp = client.get("/intervals/postgres")

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "data": NO_DATA_MESSAGE}

    def test_sort_warning_for_scan_store(self, client):
        resp = client.get("/intervals/leveldb", params={"sort_by": "units", "order": "desc"})

        assert resp.status_code == 200
        assert resp.json()["warnings"]


class TestErrorEnvelopes:
    def test_unavailable_store(self, client):
        resp = client.get("/intervals/mongodb")

        assert resp.status_code == 503
        assert resp.json() == {
            "success": False,
            "error": {
                "code": "store_unavailable",
                "store": "mongodb",
                "message": "backend not configured",
            },
        }

    def test_unknown_store(self, client):
        resp = client.get("/intervals/cassandra")

        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "unknown_store"

    def test_read_failure(self, client, fake_pool):
        fake_pool.fail_with = ConnectionError("gone")

        resp = client.get("/intervals/postgres")

        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "store_read_failed"

    def test_bad_date_range(self, client):
        resp = client.get("/intervals/leveldb", params={"date_range": "10m"})

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_query"
        assert resp.json()["error"]["store"] == "leveldb"

    def test_validation_error(self, client):
        resp = client.get("/intervals/leveldb", params={"limit": 0})

        assert resp.status_code == 422
        assert resp.json()["success"] is False
        assert resp.json()["error"]["code"] == "invalid_query"

    def test_strict_sort(self, fake_kv, seeded_kv):
        service = ReadService({"leveldb": LevelDBStoreAdapter(fake_kv)}, strict_sort=True)
        with TestClient(create_app(read_service=service)) as strict_client:
            resp = strict_client.get("/intervals/leveldb", params={"order": "desc"})

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "unsupported_sort"


class TestHealth:
    def test_health_reports_each_store(self, client):
        body = client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["stores"] == {"leveldb": True, "postgres": True, "mongodb": False}

    def test_ready(self, client):
        assert client.get("/ready").json() == {"status": "ready"}
