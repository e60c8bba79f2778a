"""
Daily bars: one grouped-daily request per trading session.
"""
from datetime import date
from typing import List

from common.models.data_models import Bar, WorkUnit
from common.models.partitions import PartitionBy
from ingestion.clients.aggregates_client import AggregatesClient
from ingestion.pipeline.work_planner import WorkPlanner
from storage.interfaces import Column, TableSchema

from .base import IngestionJob

BAR_COLUMNS = (
    Column("ts", "BIGINT"),
    Column("symbol", "TEXT"),
    Column("open", "DOUBLE PRECISION"),
    Column("high", "DOUBLE PRECISION"),
    Column("low", "DOUBLE PRECISION"),
    Column("close", "DOUBLE PRECISION"),
    Column("volume", "BIGINT"),
    Column("close_un", "DOUBLE PRECISION"),
)

AGG1D_SCHEMA = TableSchema(
    name="agg1d",
    columns=BAR_COLUMNS,
    partition_by=PartitionBy.YEAR,
    volume_column="volume",
)


class DailyBarsJob(IngestionJob):
    """Unadjusted daily bars for the whole market, partitioned by year."""

    name = "agg1d"
    schema = AGG1D_SCHEMA

    def __init__(self, client: AggregatesClient, retry=None, tz_name=None):
        super().__init__(retry, tz_name)
        self.client = client

    def build_units(self, planner: WorkPlanner, partition_key: str,
                    start: date, end: date) -> List[WorkUnit]:
        return planner.session_units(partition_key, start, end)

    def fetch(self, unit: WorkUnit) -> List[Bar]:
        return self.client.get_grouped_daily(unit.start)
