"""
Reference data: the listed ticker universe for every session.
"""
from datetime import date
from typing import List

from common.models.data_models import TickerReference, WorkUnit
from common.models.partitions import PartitionBy
from ingestion.clients.reference_client import ReferenceClient
from ingestion.pipeline.work_planner import WorkPlanner
from storage.interfaces import Column, TableSchema

from .base import IngestionJob

TICKERS_SCHEMA = TableSchema(
    name="tickers",
    columns=(
        Column("ts", "BIGINT"),
        Column("symbol", "TEXT"),
        Column("name", "TEXT"),
        Column("primary_exchange", "TEXT"),
        Column("type", "TEXT"),
        Column("currency_name", "TEXT"),
        Column("cik", "TEXT"),
        Column("composite_figi", "TEXT"),
        Column("share_class_figi", "TEXT"),
    ),
    partition_by=PartitionBy.YEAR,
)


class TickersJob(IngestionJob):
    """Daily snapshots of the ticker list, partitioned by year."""

    name = "tickers"
    schema = TICKERS_SCHEMA

    def __init__(self, client: ReferenceClient, retry=None, tz_name=None):
        super().__init__(retry, tz_name)
        self.client = client

    def build_units(self, planner: WorkPlanner, partition_key: str,
                    start: date, end: date) -> List[WorkUnit]:
        return planner.session_units(partition_key, start, end)

    def fetch(self, unit: WorkUnit) -> List[TickerReference]:
        return self.client.get_tickers_on(unit.start)
