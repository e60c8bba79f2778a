"""
Partition calendar math shared by the planner and the storage layer.

All record timestamps are UTC epoch nanoseconds. Partitions follow the
market's local calendar so that a session never straddles two partitions.
"""
from datetime import date, datetime, timedelta
from enum import Enum
from typing import List, Tuple
from zoneinfo import ZoneInfo

NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_DAY = 24 * 60 * 60 * NANOS_PER_SECOND

DEFAULT_MARKET_TIMEZONE = "America/New_York"


def _zone(tz_name: str) -> ZoneInfo:
    return ZoneInfo(tz_name)


def date_to_ns(day: date, tz_name: str = DEFAULT_MARKET_TIMEZONE) -> int:
    """Return the UTC nanosecond timestamp of local midnight on ``day``."""
    local_midnight = datetime(day.year, day.month, day.day, tzinfo=_zone(tz_name))
    return int(local_midnight.timestamp()) * NANOS_PER_SECOND


def ns_to_date(ts: int, tz_name: str = DEFAULT_MARKET_TIMEZONE) -> date:
    """Return the market-local calendar date of a UTC nanosecond timestamp."""
    return datetime.fromtimestamp(ts // NANOS_PER_SECOND, tz=_zone(tz_name)).date()


def add_month(day: date) -> date:
    """First day of the month after ``day``'s month."""
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


class PartitionBy(str, Enum):
    """Partition granularity of a table."""

    YEAR = "year"
    MONTH = "month"
    DAY = "day"

    def key_for_date(self, day: date) -> str:
        """Partition key containing ``day``."""
        if self is PartitionBy.YEAR:
            return f"{day.year}"
        if self is PartitionBy.MONTH:
            return f"{day.year}-{day.month:02d}"
        return day.isoformat()

    def key_for_ts(self, ts: int, tz_name: str = DEFAULT_MARKET_TIMEZONE) -> str:
        return self.key_for_date(ns_to_date(ts, tz_name))

    def start_of(self, day: date) -> date:
        """First calendar day of the partition containing ``day``."""
        if self is PartitionBy.YEAR:
            return date(day.year, 1, 1)
        if self is PartitionBy.MONTH:
            return date(day.year, day.month, 1)
        return day

    def span(self, key: str) -> Tuple[date, date]:
        """
        Calendar span of a partition key.

        Returns:
            (first day, first day of the next partition)
        """
        if self is PartitionBy.YEAR:
            year = int(key)
            return date(year, 1, 1), date(year + 1, 1, 1)
        if self is PartitionBy.MONTH:
            start = date(int(key[:4]), int(key[5:7]), 1)
            return start, add_month(start)
        start = date.fromisoformat(key)
        return start, start + timedelta(days=1)

    def next_start(self, day: date) -> date:
        return self.span(self.key_for_date(day))[1]

    def keys_between(self, start: date, end: date) -> List[str]:
        """Chronological keys of every partition intersecting ``[start, end)``."""
        keys: List[str] = []
        cursor = self.start_of(start)
        while cursor < end:
            keys.append(self.key_for_date(cursor))
            cursor = self.next_start(cursor)
        return keys
