"""
Tests for the interval domain models: wire parsing, invariants, query matching
and page statistics.
"""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from history_replicator.domain.models import (
    Interval,
    IntervalHistoryResponse,
    MetaStats,
    ReadQuery,
    SortDirection,
    SortField,
    SortSpec,
)


class TestInterval:
    def test_parses_upstream_camel_case_strings(self):
        """
        Test 1: Upstream sends unix seconds and measures as decimal strings.
        """
        interval = Interval.model_validate(
            {"startTime": "1648771200", "endTime": "1648774800", "count": "12", "units": "345"}
        )

        assert interval.start_time == datetime(2022, 4, 1, tzinfo=UTC)
        assert interval.end_time == datetime(2022, 4, 1, 1, tzinfo=UTC)
        assert interval.count == 12
        assert interval.units == 345
        assert interval.id is None

    def test_accepts_snake_case_and_naive_datetimes(self):
        """
        Test 2: Naive datetimes are treated as UTC.
        """
        interval = Interval(
            start_time=datetime(2022, 4, 1),
            end_time=datetime(2022, 4, 1, 1),
            count=1,
            units=2,
        )
        assert interval.start_time.tzinfo is not None
        assert interval.to_api()["startTime"] == 1648771200

    def test_start_must_precede_end(self):
        """
        Test 3: start_time < end_time is enforced at construction.
        """
        with pytest.raises(ValidationError):
            Interval(start_time=3600, end_time=3600, count=1, units=1)
        with pytest.raises(ValidationError):
            Interval(start_time=7200, end_time=3600, count=1, units=1)

    def test_negative_measures_rejected(self):
        with pytest.raises(ValidationError):
            Interval(start_time=0, end_time=3600, count=-1, units=1)

    def test_natural_key_and_kv_key(self):
        """
        Test 4: Natural key ignores the store id; KV key is "start:end".
        """
        a = Interval(start_time=0, end_time=3600, count=1, units=1, id="7")
        b = Interval(start_time=0, end_time=3600, count=1, units=1)

        assert a.natural_key == b.natural_key
        assert a.kv_key() == b"0:3600"

    def test_id_is_stringified(self):
        interval = Interval(start_time=0, end_time=3600, count=1, units=1, id=42)
        assert interval.id == "42"
        assert interval.to_api()["id"] == "42"

    def test_to_record_has_unix_seconds(self):
        interval = Interval(start_time=3600, end_time=7200, count=3, units=4)
        assert interval.to_record() == {
            "start_time": 3600,
            "end_time": 7200,
            "count": 3,
            "units": 4,
        }


class TestIntervalHistoryResponse:
    def test_meta_is_optional_and_extra_keys_ignored(self):
        payload = (
            '{"intervals": [{"startTime": "0", "endTime": "3600", "count": "1", "units": "5"}],'
            ' "other": 1}'
        )
        parsed = IntervalHistoryResponse.model_validate_json(payload)

        assert len(parsed.intervals) == 1
        assert parsed.meta == {}

    def test_missing_intervals_is_invalid(self):
        with pytest.raises(ValidationError):
            IntervalHistoryResponse.model_validate_json('{"meta": {}}')


class TestSortParsing:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (None, SortField.START_TIME),
            ("units", SortField.UNITS),
            ("COUNT", SortField.COUNT),
            ("startTime", SortField.START_TIME),
            ("bogus", SortField.START_TIME),
        ],
    )
    def test_sort_field_falls_back_to_start_time(self, raw, expected):
        assert SortField.parse(raw) == expected

    def test_direction_defaults_to_asc(self):
        assert SortDirection.parse(None) == SortDirection.ASC
        assert SortDirection.parse("DESC") == SortDirection.DESC
        assert SortDirection.parse("sideways") == SortDirection.ASC

    def test_natural_order(self):
        assert SortSpec().is_natural_order
        assert not SortSpec(direction=SortDirection.DESC).is_natural_order
        assert not SortSpec(field=SortField.UNITS).is_natural_order


class TestReadQuery:
    def test_matches_time_range_inclusive(self, make_intervals):
        first, second, third = make_intervals(3)
        query = ReadQuery(time_range=(0, 7200))

        assert query.matches(first)
        assert query.matches(second)
        assert not query.matches(third)

    def test_min_units_is_strict(self):
        interval = Interval(start_time=0, end_time=3600, count=1, units=120)

        assert not ReadQuery(min_units=120).matches(interval)
        assert ReadQuery(min_units=119).matches(interval)

    def test_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            ReadQuery(limit=0)


class TestMetaStats:
    def test_first_and_last_of_page(self, make_intervals):
        intervals = make_intervals(5)
        stats = MetaStats.from_intervals(intervals)

        assert stats.to_api() == {
            "startTime": 0,
            "endTime": 5 * 3600,
            "startCount": 10,
            "endCount": 14,
            "startUnits": 100,
            "endUnits": 140,
        }

    def test_empty_result_has_no_stats(self):
        with pytest.raises(ValueError):
            MetaStats.from_intervals([])
