"""
Minute bars: one request series per symbol per month.
"""
from datetime import date
from typing import List

from common.models.data_models import Bar, WorkUnit
from common.models.partitions import PartitionBy, date_to_ns
from ingestion.clients.aggregates_client import AggregatesClient
from ingestion.pipeline.work_planner import WorkPlanner
from storage.interfaces import TableSchema

from .agg1d import AGG1D_SCHEMA, BAR_COLUMNS
from .base import IngestionJob

AGG1M_SCHEMA = TableSchema(
    name="agg1m",
    columns=BAR_COLUMNS,
    partition_by=PartitionBy.MONTH,
    volume_column="volume",
)


class MinuteBarsJob(IngestionJob):
    """
    Unadjusted minute bars, partitioned by month.

    The symbol universe of a month is every symbol with non-zero daily volume
    in agg1d during that month.
    """

    name = "agg1m"
    schema = AGG1M_SCHEMA
    source_schema = AGG1D_SCHEMA

    def __init__(self, client: AggregatesClient, retry=None, tz_name=None):
        super().__init__(retry, tz_name)
        self.client = client

    def build_units(self, planner: WorkPlanner, partition_key: str,
                    start: date, end: date) -> List[WorkUnit]:
        if not planner.calendar.sessions(start, end):
            return []
        tz_name = self.schema.tz_name
        symbols = self.source.scan_symbols_with_activity(
            date_to_ns(start, tz_name), date_to_ns(end, tz_name), min_volume=0
        )
        return planner.symbol_units(partition_key, start, end, symbols)

    def fetch(self, unit: WorkUnit) -> List[Bar]:
        return self.client.get_minute_bars(unit.symbol, unit.start, unit.end)

