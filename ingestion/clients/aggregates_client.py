"""
Polygon.io Aggregates (OHLCV Bars) Client
Fetches unadjusted daily and minute bars.
"""
import logging
from datetime import date
from typing import Any, Dict, List
from urllib.parse import quote

from common.errors import MalformedRecordError, NoDataError, TransientFetchError
from common.models.data_models import Bar
from common.models.partitions import DEFAULT_MARKET_TIMEZONE, date_to_ns
from ingestion.pipeline.pagination import Page, PaginationDeduplicator

from .decoding import as_float, as_int, decode_records, is_clean_symbol, require
from .polygon_client import PolygonClient

logger = logging.getLogger(__name__)

NANOS_PER_MILLI = 1_000_000


class AggregatesClient:
    """
    Client for fetching aggregates (OHLCV bars) from Polygon.io.

    Endpoints:
    - /v2/aggs/ticker/{ticker}/range/1/minute/{from}/{to}
    - /v2/aggs/grouped/locale/us/market/stocks/{date}

    Bars are requested unadjusted, so ``close_un`` equals ``close``.
    """

    def __init__(self, client: PolygonClient, page_limit: int = 50000, minute_margin_ms: int = 0,
                 tz_name: str = DEFAULT_MARKET_TIMEZONE):
        """
        Initialize aggregates client.

        Args:
            client: PolygonClient instance
            page_limit: Rows requested per minute-bar page (max 50000)
            minute_margin_ms: Cursor safety margin between minute-bar pages
            tz_name: Market timezone for session-date timestamps
        """
        self.client = client
        self.page_limit = page_limit
        self.tz_name = tz_name
        self.minute_pages = PaginationDeduplicator(
            ts_of=lambda bar: bar.ts // NANOS_PER_MILLI,
            id_of=lambda bar: bar.identity,
            margin=minute_margin_ms,
        )

    def get_grouped_daily(self, day: date) -> List[Bar]:
        """
        Get unadjusted daily bars for every ticker traded on ``day``.

        All bars are stamped with local midnight of the session date.

        Raises:
            NoDataError: The source has no bars for the date
            TransientFetchError: Retryable request failure
        """
        endpoint = f"/v2/aggs/grouped/locale/us/market/stocks/{day.isoformat()}"
        response = self.client._make_request(endpoint, {'adjusted': 'false'})
        raw = response.get('results') or []
        if not raw:
            raise NoDataError(f"No grouped daily bars for {day}")

        ts = date_to_ns(day, self.tz_name)
        bars = decode_records(raw, lambda row: self._decode_daily(row, ts), f"grouped {day}")
        logger.debug(f"Fetched grouped daily bars for {len(bars)} tickers on {day}")
        return bars

    def get_minute_bars(self, symbol: str, start: date, end: date) -> List[Bar]:
        """
        Get unadjusted 1-minute bars for ``symbol`` over ``[start, end)``.

        Pages are merged with timestamp-cursor deduplication.

        Raises:
            NoDataError: No bars in the window
            TransientFetchError: Retryable failure, including bars outside the window
            FatalFetchError: Pagination stalled
        """
        start_ns = date_to_ns(start, self.tz_name)
        end_ns = date_to_ns(end, self.tz_name)
        last_ms = end_ns // NANOS_PER_MILLI - 1
        path = f"/v2/aggs/ticker/{quote(symbol, safe='')}/range/1/minute"
        label = f"{symbol} {start}..{end}"

        def fetch_page(cursor_ms: int, limit: int) -> Page[Bar]:
            response = self.client._make_request(
                f"{path}/{cursor_ms}/{last_ms}",
                {'adjusted': 'false', 'sort': 'asc', 'limit': limit},
            )
            raw = response.get('results') or []
            return Page(
                records=decode_records(raw, lambda row: self._decode_minute(row, symbol), label),
                size=len(raw),
            )

        bars = self.minute_pages.fetch_all(
            fetch_page, start_ns // NANOS_PER_MILLI, self.page_limit, label=label
        )
        if not bars:
            raise NoDataError(f"No minute bars for {label}")

        low = min(bar.ts for bar in bars)
        high = max(bar.ts for bar in bars)
        if low < start_ns:
            raise TransientFetchError(f"{label}: bar ts {low} before window start {start_ns}")
        if high >= end_ns:
            raise TransientFetchError(f"{label}: bar ts {high} after window end {end_ns}")

        logger.debug(f"Fetched {len(bars)} minute bars for {label}")
        return bars

    @staticmethod
    def _decode_daily(row: Dict[str, Any], ts: int) -> Bar:
        symbol = require(row, 'T')
        if not isinstance(symbol, str) or not is_clean_symbol(symbol):
            raise MalformedRecordError(f"bad symbol {symbol!r}")
        close = as_float(require(row, 'c'), 'c')
        return Bar(
            ts=ts,
            symbol=symbol,
            open=as_float(require(row, 'o'), 'o'),
            high=as_float(require(row, 'h'), 'h'),
            low=as_float(require(row, 'l'), 'l'),
            close=close,
            volume=as_int(require(row, 'v'), 'v'),
            close_un=close,
        )

    @staticmethod
    def _decode_minute(row: Dict[str, Any], symbol: str) -> Bar:
        close = as_float(require(row, 'c'), 'c')
        return Bar(
            ts=as_int(require(row, 't'), 't') * NANOS_PER_MILLI,
            symbol=symbol,
            open=as_float(require(row, 'o'), 'o'),
            high=as_float(require(row, 'h'), 'h'),
            low=as_float(require(row, 'l'), 'l'),
            close=close,
            volume=as_int(require(row, 'v'), 'v'),
            close_un=close,
        )
