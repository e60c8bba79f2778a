"""Test fixtures for backfill tests."""
from datetime import date, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set
from unittest.mock import MagicMock

import pytest

from common.config.settings import BackfillConfig
from common.errors import NoDataError
from common.models.data_models import Bar, PartitionMetadata
from common.models.partitions import date_to_ns
from storage.interfaces import TableSchema


# Mock classes (importable for direct instantiation in tests)
class InMemoryPartitionedTable:
    """Partitioned table kept in dicts, with the same buffered write semantics as Timescale."""

    def __init__(self, schema: TableSchema):
        self.schema = schema
        self.name = schema.name
        self.partition_by = schema.partition_by
        self.tz_name = schema.tz_name
        self.partitions: Dict[str, List[tuple]] = {}
        self.flushes = 0
        # Simulates a storage bug: rows silently lost on the next flush
        self.lose_rows_on_flush = 0
        self._staged: Optional[str] = None
        self._rows: List[tuple] = []
        self._truncate: List[str] = []

    def seed(self, partition_key: str, rows: Iterable[Sequence]) -> None:
        self.partitions.setdefault(partition_key, []).extend(tuple(r) for r in rows)

    def rows(self, partition_key: str) -> List[tuple]:
        return list(self.partitions.get(partition_key, []))

    def partition_metadata(self) -> Dict[str, PartitionMetadata]:
        return {
            key: PartitionMetadata(
                partition_key=key,
                row_count=len(rows),
                from_ts=min((r[0] for r in rows), default=None),
                to_ts=max((r[0] for r in rows), default=None),
            )
            for key, rows in self.partitions.items()
        }

    def last_committed_timestamp(self, partition_key: Optional[str] = None) -> Optional[int]:
        keys = [partition_key] if partition_key else list(self.partitions)
        stamps = [r[0] for key in keys for r in self.partitions.get(key, [])]
        return max(stamps) if stamps else None

    def row_count(self, partition_key: str) -> int:
        return len(self.partitions.get(partition_key, []))

    def scan_symbols_with_activity(self, start_ns: int, end_ns: int,
                                   min_volume: Optional[int] = None) -> Set[str]:
        volume_at = None
        if min_volume is not None:
            volume_at = self.schema.column_names.index(self.schema.volume_column)
        return {
            row[1]
            for rows in self.partitions.values() for row in rows
            if start_ns <= row[0] < end_ns and (volume_at is None or row[volume_at] > min_volume)
        }

    def stage_partition(self, partition_key: str) -> None:
        self._staged = partition_key

    def truncate_partition(self, partition_key: str) -> None:
        self._truncate.append(partition_key)

    def append_record(self, row: Sequence) -> None:
        assert self._staged is not None, "append before stage_partition"
        assert len(row) == len(self.schema.columns)
        self._rows.append((self._staged, tuple(row)))

    def flush(self) -> None:
        for key in self._truncate:
            self.partitions[key] = []
        if self._staged is not None:
            self.partitions.setdefault(self._staged, [])
        rows = self._rows[:len(self._rows) - self.lose_rows_on_flush]
        for key, row in rows:
            self.partitions.setdefault(key, []).append(row)
        self.lose_rows_on_flush = 0
        self.flushes += 1
        self._staged = None
        self._rows = []
        self._truncate = []


class InMemoryStore:
    """PartitionedStore over InMemoryPartitionedTable."""

    def __init__(self):
        self.tables: Dict[str, InMemoryPartitionedTable] = {}

    def open_table(self, schema: TableSchema) -> InMemoryPartitionedTable:
        if schema.name not in self.tables:
            self.tables[schema.name] = InMemoryPartitionedTable(schema)
        return self.tables[schema.name]

    def get_table(self, name: str) -> Optional[InMemoryPartitionedTable]:
        return self.tables.get(name)

    def close(self) -> None:
        pass


class WeekdayCalendar:
    """Session calendar: weekdays minus an explicit holiday set."""

    def __init__(self, holidays: Iterable[date] = ()):
        self.holidays = set(holidays)

    def is_session(self, day: date) -> bool:
        return day.weekday() < 5 and day not in self.holidays

    def sessions(self, start: date, end: date) -> List[date]:
        days = []
        cursor = start
        while cursor < end:
            if self.is_session(cursor):
                days.append(cursor)
            cursor += timedelta(days=1)
        return days


class FakeAggregatesClient:
    """Serves grouped daily bars from a dict and records every call."""

    def __init__(self, bars_by_day: Optional[Dict[date, List[Bar]]] = None,
                 default_symbols: Sequence[str] = ('AAPL', 'MSFT')):
        self.bars_by_day = bars_by_day
        self.default_symbols = default_symbols
        self.calls: List[date] = []

    def get_grouped_daily(self, day: date) -> List[Bar]:
        self.calls.append(day)
        if self.bars_by_day is not None:
            if day not in self.bars_by_day:
                raise NoDataError(f"No grouped daily bars for {day}")
            return self.bars_by_day[day]
        ts = date_to_ns(day)
        return [make_bar(ts, symbol) for symbol in self.default_symbols]


def make_bar(ts: int, symbol: str, close: float = 10.0, volume: int = 100) -> Bar:
    return Bar(ts=ts, symbol=symbol, open=close, high=close + 1, low=close - 1,
               close=close, volume=volume, close_un=close)


def trades_server(dataset: Dict[str, List[Dict[str, Any]]]) -> Callable[..., Dict[str, Any]]:
    """
    Side effect for ``PolygonClient._make_request`` emulating /v3/trades.

    Serves rows with ``timestamp.gte <= sip_timestamp < timestamp.lt`` in
    timestamp order, ``limit`` at a time.
    """
    def handler(endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        symbol = endpoint.rsplit('/', 1)[-1]
        rows = sorted(dataset.get(symbol, []), key=lambda r: r['sip_timestamp'])
        window = [r for r in rows
                  if params['timestamp.gte'] <= r['sip_timestamp'] < params['timestamp.lt']]
        return {'status': 'OK', 'results': window[:params['limit']]}
    return handler


def raw_trade(ts: int, seq: int, exchange: int = 4, price: float = 10.0, size: int = 100) -> Dict[str, Any]:
    return {
        'sip_timestamp': ts,
        'participant_timestamp': ts - 1000,
        'sequence_number': seq,
        'id': str(seq),
        'exchange': exchange,
        'tape': 1,
        'price': price,
        'size': size,
    }


# Fixtures
@pytest.fixture
def store():
    """Empty in-memory partitioned store."""
    return InMemoryStore()


@pytest.fixture
def calendar():
    """Weekday calendar with Good Friday 2024 as a holiday."""
    return WeekdayCalendar(holidays=[date(2024, 3, 29)])


@pytest.fixture
def config():
    """Default config with retries that never sleep."""
    cfg = BackfillConfig.default()
    cfg.retry.base_delay = 0.0
    cfg.system.max_workers = 4
    return cfg


@pytest.fixture
def fake_aggregates():
    return FakeAggregatesClient()


@pytest.fixture
def events():
    """Stand-in for the structured run logger."""
    return MagicMock()
