"""
Polygon.io Reference Data Client
Fetches the ticker universe as listed on a given date.
"""
import logging
from datetime import date
from typing import Any, Dict, List

from common.errors import MalformedRecordError, NoDataError, TransientFetchError
from common.models.data_models import TickerReference
from common.models.partitions import DEFAULT_MARKET_TIMEZONE, date_to_ns

from .decoding import decode_records, require
from .polygon_client import PolygonClient

logger = logging.getLogger(__name__)


class ReferenceClient:
    """
    Client for fetching reference data from Polygon.io.

    Endpoints:
    - /v3/reference/tickers
    """

    def __init__(self, client: PolygonClient, page_limit: int = 1000,
                 tz_name: str = DEFAULT_MARKET_TIMEZONE):
        """
        Initialize reference client.

        Args:
            client: PolygonClient instance
            page_limit: Tickers per page (max 1000)
            tz_name: Market timezone for session-date timestamps
        """
        self.client = client
        self.page_limit = page_limit
        self.tz_name = tz_name

    def get_tickers_on(self, day: date) -> List[TickerReference]:
        """
        Get every stock ticker listed on ``day``.

        Each record's ``ts`` is local midnight of ``day``; an empty list is a
        valid answer.

        Raises:
            TransientFetchError: Retryable request failure
        """
        params = {
            'date': day.isoformat(),
            'market': 'stocks',
            'active': 'true',
            'order': 'asc',
            'sort': 'ticker',
            'limit': self.page_limit,
        }
        try:
            raw = self.client._paginate("/v3/reference/tickers", params)
        except NoDataError as e:
            raise TransientFetchError(f"Ticker list unavailable for {day}: {e}") from e

        ts = date_to_ns(day, self.tz_name)
        tickers = decode_records(raw, lambda row: self._decode(row, ts), f"tickers {day}")
        logger.debug(f"Fetched {len(tickers)} tickers for {day}")
        return tickers

    @staticmethod
    def _decode(row: Dict[str, Any], ts: int) -> TickerReference:
        symbol = require(row, 'ticker')
        if not isinstance(symbol, str) or not symbol:
            raise MalformedRecordError(f"bad ticker {symbol!r}")
        return TickerReference(
            ts=ts,
            symbol=symbol,
            name=row.get('name') or '',
            primary_exchange=row.get('primary_exchange') or '',
            type=row.get('type') or '',
            currency_name=row.get('currency_name') or '',
            cik=row.get('cik') or '',
            composite_figi=row.get('composite_figi') or '',
            share_class_figi=row.get('share_class_figi') or '',
        )
