"""
Trades: one paginated request series per symbol per session.
"""
from datetime import date
from typing import List

from common.models.data_models import Trade, WorkUnit
from common.models.partitions import PartitionBy, date_to_ns
from ingestion.clients.trades_client import TradesClient
from ingestion.pipeline.work_planner import WorkPlanner
from storage.interfaces import Column, TableSchema

from .agg1d import AGG1D_SCHEMA
from .base import IngestionJob

TRADES_SCHEMA = TableSchema(
    name="trades",
    columns=(
        Column("ts", "BIGINT"),
        Column("symbol", "TEXT"),
        Column("size", "BIGINT"),
        Column("price", "DOUBLE PRECISION"),
        Column("exchange", "SMALLINT"),
        Column("tape", "SMALLINT"),
        Column("trade_id", "TEXT"),
        Column("sequence_number", "BIGINT"),
    ),
    partition_by=PartitionBy.DAY,
)


class TradesJob(IngestionJob):
    """
    Every trade print, partitioned by day.

    Symbols for a day are those present in agg1d on that day. Per-symbol
    trade pulls fan out widely, so units get a larger retry budget.
    """

    name = "trades"
    schema = TRADES_SCHEMA
    source_schema = AGG1D_SCHEMA

    def __init__(self, client: TradesClient, retry=None, tz_name=None):
        super().__init__(retry, tz_name)
        self.client = client

    @property
    def max_attempts(self) -> int:
        return self.retry.trades_max_attempts

    def build_units(self, planner: WorkPlanner, partition_key: str,
                    start: date, end: date) -> List[WorkUnit]:
        if not planner.calendar.is_session(start):
            return []
        tz_name = self.schema.tz_name
        symbols = self.source.scan_symbols_with_activity(
            date_to_ns(start, tz_name), date_to_ns(end, tz_name)
        )
        return planner.symbol_units(partition_key, start, end, symbols)

    def fetch(self, unit: WorkUnit) -> List[Trade]:
        return self.client.get_trades(unit.symbol, unit.start)
