"""Domain models for unit-interval history.

Models for:
- Interval: one time bucket (start/end) with its count and units measures
- IntervalHistoryResponse: upstream API envelope
- ReadQuery / SortSpec: filter, sort and pagination for store reads
- MetaStats: first/last summary of a sorted page

All models use:
- Pydantic for validation
- Timezone-aware UTC datetimes
- Integers for measures (upstream sends them as decimal strings)
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def to_utc_datetime(value: Any) -> Any:
    """Coerce unix seconds (int, float or digit string) to an aware UTC datetime."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=UTC)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return datetime.fromtimestamp(int(value.strip()), tz=UTC)
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def to_unix(value: datetime) -> int:
    """Unix seconds for an (aware or naive-UTC) datetime."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp())


class Interval(BaseModel):
    """Unit-interval snapshot record.

    Natural key is ``(start_time, end_time)``; ``id`` is whatever identifier
    the owning store assigned and is never used to deduplicate.
    """

    model_config = ConfigDict(populate_by_name=True)

    start_time: datetime = Field(..., alias="startTime", description="Bucket start (UTC)")
    end_time: datetime = Field(..., alias="endTime", description="Bucket end (UTC)")
    count: int = Field(..., ge=0, description="Member count at end of bucket")
    units: int = Field(..., ge=0, description="Pool units at end of bucket")
    id: str | None = Field(None, description="Store-assigned identifier (optional)")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_timestamp(cls, v: Any) -> Any:
        return to_utc_datetime(v)

    @field_validator("count", "units", mode="before")
    @classmethod
    def _parse_measure(cls, v: Any) -> Any:
        if isinstance(v, str):
            return int(v.strip())
        return v

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> Any:
        return None if v is None else str(v)

    @model_validator(mode="after")
    def _check_bounds(self) -> "Interval":
        if self.start_time >= self.end_time:
            raise ValueError(
                f"start_time ({self.start_time}) must be before end_time ({self.end_time})"
            )
        return self

    @property
    def natural_key(self) -> tuple[datetime, datetime]:
        return (self.start_time, self.end_time)

    def kv_key(self) -> bytes:
        """Composite key used by ordered key-value stores."""
        return f"{to_unix(self.start_time)}:{to_unix(self.end_time)}".encode()

    def to_record(self) -> dict[str, Any]:
        """Storage representation: unix seconds and plain integers, no id."""
        return {
            "start_time": to_unix(self.start_time),
            "end_time": to_unix(self.end_time),
            "count": self.count,
            "units": self.units,
        }

    def to_api(self) -> dict[str, Any]:
        """Camel-cased API representation mirroring the upstream format."""
        payload = {
            "startTime": to_unix(self.start_time),
            "endTime": to_unix(self.end_time),
            "count": self.count,
            "units": self.units,
        }
        if self.id is not None:
            payload["id"] = self.id
        return payload


class IntervalHistoryResponse(BaseModel):
    """Upstream ``/history/{resource}`` envelope."""

    model_config = ConfigDict(extra="ignore")

    intervals: list[Interval]
    meta: dict[str, Any] = Field(default_factory=dict)


class SortField(str, Enum):
    """Fields a read may be sorted by."""

    START_TIME = "start_time"
    COUNT = "count"
    UNITS = "units"

    @classmethod
    def parse(cls, value: str | None) -> "SortField":
        """Lenient parse: unknown or missing values fall back to start_time."""
        if value:
            normalized = value.strip().lower()
            aliases = {"starttime": "start_time", "start": "start_time"}
            normalized = aliases.get(normalized, normalized)
            for member in cls:
                if member.value == normalized:
                    return member
        return cls.START_TIME


class SortDirection(str, Enum):
    """Sort direction; anything but an explicit desc is ascending."""

    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: str | None) -> "SortDirection":
        if value and value.strip().lower() == "desc":
            return cls.DESC
        return cls.ASC


class SortSpec(BaseModel):
    """Requested ordering of a read."""

    model_config = ConfigDict(frozen=True)

    field: SortField = SortField.START_TIME
    direction: SortDirection = SortDirection.ASC

    @property
    def is_natural_order(self) -> bool:
        """True when this matches the key order of ordered key-value stores."""
        return (
            self.field == SortField.START_TIME
            and self.direction == SortDirection.ASC
        )


class ReadQuery(BaseModel):
    """Filter, sort and pagination applied by a store read."""

    time_range: tuple[datetime, datetime] | None = None
    min_units: int | None = Field(None, ge=0)
    sort: SortSpec = Field(default_factory=SortSpec)
    limit: int = Field(50, ge=1)
    offset: int = Field(0, ge=0)

    @field_validator("time_range", mode="before")
    @classmethod
    def _parse_range(cls, v: Any) -> Any:
        if v is None:
            return v
        start, end = v
        return (to_utc_datetime(start), to_utc_datetime(end))

    def matches(self, interval: Interval) -> bool:
        """Apply the filters in-process (scan-based stores)."""
        if self.time_range is not None:
            start, end = self.time_range
            if interval.start_time < start or interval.end_time > end:
                return False
        if self.min_units is not None and interval.units <= self.min_units:
            return False
        return True


class MetaStats(BaseModel):
    """Summary of the first and last element of an already-sorted page."""

    start_time: datetime
    end_time: datetime
    start_count: int
    end_count: int
    start_units: int
    end_units: int

    @classmethod
    def from_intervals(cls, intervals: list[Interval]) -> "MetaStats":
        if not intervals:
            raise ValueError("MetaStats requires a non-empty result")
        first, last = intervals[0], intervals[-1]
        return cls(
            start_time=first.start_time,
            end_time=last.end_time,
            start_count=first.count,
            end_count=last.count,
            start_units=first.units,
            end_units=last.units,
        )

    def to_api(self) -> dict[str, Any]:
        return {
            "startTime": to_unix(self.start_time),
            "endTime": to_unix(self.end_time),
            "startCount": self.start_count,
            "endCount": self.end_count,
            "startUnits": self.start_units,
            "endUnits": self.end_units,
        }
