"""Ingestion jobs, one per backfilled table."""
from .base import IngestionJob
from .agg1d import AGG1D_SCHEMA, DailyBarsJob
from .agg1m import AGG1M_SCHEMA, MinuteBarsJob
from .trades import TRADES_SCHEMA, TradesJob
from .tickers import TICKERS_SCHEMA, TickersJob

# Run order: dependent jobs read agg1d
JOB_ORDER = ('agg1d', 'tickers', 'agg1m', 'trades')

__all__ = [
    'IngestionJob',
    'DailyBarsJob',
    'MinuteBarsJob',
    'TradesJob',
    'TickersJob',
    'AGG1D_SCHEMA',
    'AGG1M_SCHEMA',
    'TRADES_SCHEMA',
    'TICKERS_SCHEMA',
    'JOB_ORDER',
]
