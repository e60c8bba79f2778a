"""
Polygon.io Trades Client
Fetches every trade print of a symbol for one session.
"""
import logging
from datetime import date, timedelta
from typing import Any, Dict, List
from urllib.parse import quote

from common.errors import NoDataError
from common.models.data_models import Trade
from common.models.partitions import DEFAULT_MARKET_TIMEZONE, date_to_ns
from ingestion.pipeline.pagination import Page, PaginationDeduplicator

from .decoding import as_float, as_int, decode_records, require
from .polygon_client import PolygonClient

logger = logging.getLogger(__name__)


class TradesClient:
    """
    Client for the v3 trades endpoint.

    Pages are requested by ``timestamp.gte`` cursor in ascending order. Trade
    timestamps are not unique, so page boundaries are deduplicated on
    (timestamp, exchange, id, sequence number).
    """

    ENDPOINT = "/v3/trades/{symbol}"

    def __init__(self, client: PolygonClient, page_limit: int = 50000, margin_ns: int = 1_000_000,
                 tz_name: str = DEFAULT_MARKET_TIMEZONE):
        """
        Initialize trades client.

        Args:
            client: PolygonClient instance
            page_limit: Trades requested per page (max 50000)
            margin_ns: Cursor safety margin subtracted from the boundary timestamp
            tz_name: Market timezone defining the session day
        """
        self.client = client
        self.page_limit = page_limit
        self.tz_name = tz_name
        self.pages = PaginationDeduplicator(
            ts_of=lambda trade: trade.ts,
            id_of=lambda trade: trade.identity,
            margin=margin_ns,
        )

    def get_trades(self, symbol: str, day: date) -> List[Trade]:
        """
        Get all trades for ``symbol`` on ``day``.

        Raises:
            NoDataError: Symbol did not trade that day
            TransientFetchError: Retryable request failure
            FatalFetchError: Pagination stalled
        """
        start_ns = date_to_ns(day, self.tz_name)
        end_ns = date_to_ns(day + timedelta(days=1), self.tz_name)
        endpoint = self.ENDPOINT.format(symbol=quote(symbol, safe=''))
        label = f"{symbol} {day}"

        def fetch_page(cursor: int, limit: int) -> Page[Trade]:
            response = self.client._make_request(endpoint, {
                'timestamp.gte': cursor,
                'timestamp.lt': end_ns,
                'order': 'asc',
                'sort': 'timestamp',
                'limit': limit,
            })
            raw = response.get('results') or []
            return Page(
                records=decode_records(raw, lambda row: self._decode(row, symbol), label),
                size=len(raw),
            )

        trades = self.pages.fetch_all(fetch_page, start_ns, self.page_limit, label=label)
        if not trades:
            raise NoDataError(f"No trades for {label}")
        logger.debug(f"Fetched {len(trades)} trades for {label}")
        return trades

    @staticmethod
    def _decode(row: Dict[str, Any], symbol: str) -> Trade:
        return Trade(
            ts=as_int(require(row, 'sip_timestamp'), 'sip_timestamp'),
            symbol=symbol,
            size=as_int(require(row, 'size'), 'size'),
            price=as_float(require(row, 'price'), 'price'),
            exchange=as_int(row.get('exchange', 0), 'exchange'),
            tape=as_int(row.get('tape', 0), 'tape'),
            trade_id=str(row.get('id', '')),
            sequence_number=as_int(require(row, 'sequence_number'), 'sequence_number'),
        )
