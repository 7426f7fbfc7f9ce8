"""
Tests for OperationMetrics: timing, Prometheus samples and the metrics file.
"""

import pytest
from prometheus_client import REGISTRY

from history_replicator.infrastructure.observability import (
    DatabaseOperation,
    OperationMetrics,
    configure_metrics_file,
)


def sample(name: str, **labels) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


@pytest.fixture
def metrics_file(tmp_path):
    path = tmp_path / "performance_metrics.txt"
    configure_metrics_file(path)
    yield path
    configure_metrics_file(None)


class TestOperationMetrics:
    def test_context_manager_records_success(self, metrics_file):
        """
        Test 1: A successful block observes the histogram and counts records.
        """
        before_count = sample(
            "history_replicator_store_operation_seconds_count",
            store="metrics-test", operation="write", status="ok",
        )
        before_records = sample(
            "history_replicator_store_records_total", store="metrics-test", operation="write"
        )

        with OperationMetrics("metrics-test", DatabaseOperation.WRITE, 3) as m:
            m.record_count = 2

        assert m.duration is not None and m.duration >= 0
        assert sample(
            "history_replicator_store_operation_seconds_count",
            store="metrics-test", operation="write", status="ok",
        ) == before_count + 1
        assert sample(
            "history_replicator_store_records_total", store="metrics-test", operation="write"
        ) == before_records + 2

    def test_error_status_when_block_raises(self, metrics_file):
        """
        Test 2: Exceptions propagate and the sample is labelled status="error".
        """
        before = sample(
            "history_replicator_store_operation_seconds_count",
            store="metrics-err", operation="read", status="error",
        )

        with pytest.raises(RuntimeError):
            with OperationMetrics("metrics-err", DatabaseOperation.READ, 10):
                raise RuntimeError("boom")

        assert sample(
            "history_replicator_store_operation_seconds_count",
            store="metrics-err", operation="read", status="error",
        ) == before + 1

    def test_metrics_file_line(self, metrics_file):
        """
        Test 3: One human-readable line per finished operation.
        """
        OperationMetrics("leveldb", "write", 400).finish()

        lines = metrics_file.read_text().splitlines()
        assert len(lines) == 1
        assert "Time taken for leveldb to write unit intervals data (400 records) : " in lines[0]
        assert lines[0].rstrip().endswith("ms")

    def test_finish_is_idempotent(self, metrics_file):
        metrics = OperationMetrics("rocksdb", DatabaseOperation.READ, 1)
        first = metrics.finish()

        assert metrics.finish() == first
        assert len(metrics_file.read_text().splitlines()) == 1

    def test_no_file_configured(self, tmp_path):
        configure_metrics_file(None)
        OperationMetrics("postgres", DatabaseOperation.WRITE, 1).finish()
        assert list(tmp_path.iterdir()) == []
