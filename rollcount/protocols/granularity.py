# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Granularity Table & Bucket Normalizer.

Every event is rolled up into one bucket per configured granularity.
A bucket is the event timestamp truncated in the calendar fields of the
schema timezone:

    MINUTE  zero seconds/microseconds
    HOUR    zero minutes and below
    DAY     zero time-of-day
    MONTH   first day of the month, zero time-of-day
    YEAR    first day of the year, zero time-of-day
    ALL     fixed sentinel epoch, a single bucket for every event

Buckets are persisted as integer epoch milliseconds and read back as
fixed-offset datetimes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Dict, Iterable, Tuple, Union

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_ONE_MS = timedelta(milliseconds=1)


class Granularity(str, Enum):
    """Supported rollup granularities, coarsest first. Values are storage codes."""

    ALL = "all"
    YEAR = "yearly"
    MONTH = "monthly"
    DAY = "daily"
    HOUR = "hourly"
    MINUTE = "minutely"

    @property
    def code(self) -> str:
        return self.value

    @classmethod
    def from_code(cls, code: Union[str, "Granularity"]) -> "Granularity":
        """Parse a storage code ("daily") or member name ("DAY"), case-insensitive."""
        if isinstance(code, Granularity):
            return code
        if code is None:
            raise ValueError("A granularity is required")
        key = str(code).strip()
        for member in cls:
            if key.lower() == member.value or key.upper() == member.name:
                return member
        valid = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown granularity '{code}' (expected one of: {valid})")


def parse_granularities(codes: Union[str, Iterable[Union[str, Granularity]]]) -> Tuple[Granularity, ...]:
    """
    Parse a granularity set from config.

    Accepts a comma-separated string or an iterable of codes/members.
    Duplicates collapse; the result is ordered coarsest first.
    """
    if isinstance(codes, str):
        codes = [c for c in codes.split(",") if c.strip()]
    chosen = {Granularity.from_code(c) for c in codes}
    if not chosen:
        raise ValueError("At least one granularity must be configured")
    return tuple(g for g in Granularity if g in chosen)


def _localize(timestamp: datetime, tz: tzinfo) -> datetime:
    # Naive datetimes are wall-clock times in the schema zone.
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=tz)
    return timestamp.astimezone(tz)


def normalize(
    granularity: Granularity,
    timestamp: datetime,
    tz: tzinfo = timezone.utc,
) -> datetime:
    """
    Truncate a timestamp to its canonical bucket for a granularity.

    Pure and idempotent: normalize(g, normalize(g, t)) == normalize(g, t).
    """
    local = _localize(timestamp, tz)
    match granularity:
        case Granularity.MINUTE:
            return local.replace(second=0, microsecond=0)
        case Granularity.HOUR:
            return local.replace(minute=0, second=0, microsecond=0)
        case Granularity.DAY:
            return local.replace(hour=0, minute=0, second=0, microsecond=0)
        case Granularity.MONTH:
            return local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        case Granularity.YEAR:
            return local.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
        case Granularity.ALL:
            return EPOCH.astimezone(tz)
    raise AssertionError(f"Unhandled granularity: {granularity!r}")


def to_epoch_ms(timestamp: datetime) -> int:
    """Exact epoch milliseconds of an aware datetime (naive = UTC)."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return (timestamp - EPOCH) // _ONE_MS


def from_epoch_ms(ms: int, tz: tzinfo = timezone.utc) -> datetime:
    """
    The instant as a wall-clock time in tz, carrying the fixed UTC offset in
    force at that instant.

    The two passes through a repeated DST hour (01:00-04:00 and 01:00-05:00
    in New York) are distinct keys.
    """
    local = (EPOCH + timedelta(milliseconds=ms)).astimezone(tz)
    return local.astimezone(timezone(local.utcoffset()))


@dataclass(frozen=True)
class BucketSchema:
    """
    The explicit rollup configuration shared by every counter of a registry:
    which granularities an event is written to, and the calendar zone.
    """

    granularities: Tuple[Granularity, ...] = tuple(Granularity)
    tz: tzinfo = timezone.utc

    def __post_init__(self) -> None:
        object.__setattr__(self, "granularities", parse_granularities(self.granularities))
        if self.tz is None:
            raise ValueError("A timezone is required")

    def __contains__(self, granularity: object) -> bool:
        return granularity in self.granularities

    def require(self, granularity: Union[str, Granularity]) -> Granularity:
        """Resolve a granularity and reject it if this schema does not roll up into it."""
        resolved = Granularity.from_code(granularity)
        if resolved not in self.granularities:
            configured = ", ".join(g.code for g in self.granularities)
            raise ValueError(
                f"Granularity '{resolved.code}' is not configured (configured: {configured})"
            )
        return resolved

    def normalize(self, granularity: Granularity, timestamp: datetime) -> datetime:
        return normalize(granularity, timestamp, self.tz)

    def buckets(self, timestamp: datetime) -> Dict[Granularity, datetime]:
        """The bucket of every configured granularity for one timestamp."""
        return {g: normalize(g, timestamp, self.tz) for g in self.granularities}
