"""
Data models for the backfill system.

Records are immutable once decoded. Their ``to_row()`` output matches the
column order of the table schema they are written to.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Tuple


@dataclass(frozen=True)
class Bar:
    """OHLCV bar (daily or minute)."""
    ts: int
    symbol: str
    open: float
    high: float
    low: float
    close: float
    volume: int
    close_un: float

    @property
    def order_key(self) -> Tuple:
        return (self.ts, self.symbol)

    @property
    def identity(self) -> int:
        # Bar timestamps are unique within a single symbol's series
        return self.ts

    def to_row(self) -> Tuple:
        return (self.ts, self.symbol, self.open, self.high, self.low,
                self.close, self.volume, self.close_un)


@dataclass(frozen=True)
class Trade:
    """Single trade print."""
    ts: int
    symbol: str
    size: int
    price: float
    exchange: int
    tape: int
    trade_id: str
    sequence_number: int

    @property
    def order_key(self) -> Tuple:
        return (self.ts, self.symbol, self.sequence_number)

    @property
    def identity(self) -> Tuple:
        """Identifier used to drop repeats at page boundaries."""
        return (self.ts, self.exchange, self.trade_id, self.sequence_number)

    def to_row(self) -> Tuple:
        return (self.ts, self.symbol, self.size, self.price, self.exchange, self.tape,
                self.trade_id, self.sequence_number)


@dataclass(frozen=True)
class TickerReference:
    """Ticker metadata as listed on a given session date."""
    ts: int
    symbol: str
    name: str
    primary_exchange: str = ""
    type: str = ""
    currency_name: str = ""
    cik: str = ""
    composite_figi: str = ""
    share_class_figi: str = ""

    @property
    def order_key(self) -> Tuple:
        return (self.ts, self.symbol)

    def to_row(self) -> Tuple:
        return (self.ts, self.symbol, self.name, self.primary_exchange, self.type,
                self.currency_name, self.cik, self.composite_figi, self.share_class_figi)


@dataclass(frozen=True)
class WorkUnit:
    """
    One schedulable fetch task.

    ``key`` identifies the unit in logs and fatal messages: a date for
    per-session units, ``SYMBOL@partition`` for per-symbol units.
    ``end`` is exclusive.
    """
    key: str
    partition_key: str
    start: date
    end: date
    symbol: Optional[str] = None


@dataclass(frozen=True)
class Batch:
    """
    All work units of one partition, committed together.

    ``replace`` marks the open partition, whose committed rows are dropped and
    rewritten so late corrections at the source are picked up.
    """
    partition_key: str
    start: date
    end: date
    units: Tuple[WorkUnit, ...] = field(default_factory=tuple)
    replace: bool = False


@dataclass(frozen=True)
class PartitionMetadata:
    """Per-partition summary kept by the store."""
    partition_key: str
    row_count: int
    from_ts: Optional[int] = None
    to_ts: Optional[int] = None
