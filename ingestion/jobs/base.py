"""
Base class for ingestion jobs.

A job binds the generic pipeline to one dataset: its table schema and
partition granularity, how a partition is split into work units, how one
unit is fetched, and how many attempts a unit gets.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date
from typing import Any, List, Optional, Tuple

from common.config.settings import RetryConfig
from common.errors import DependencyNotReadyError
from common.models.data_models import WorkUnit
from common.models.partitions import PartitionBy
from ingestion.pipeline.retry_policy import RetryPolicy
from ingestion.pipeline.work_planner import WorkPlanner
from storage.interfaces import PartitionedStore, PartitionedTable, TableSchema

logger = logging.getLogger(__name__)


class IngestionJob(ABC):
    """Dataset-specific half of a backfill run."""

    name: str = ""
    schema: TableSchema
    source_schema: Optional[TableSchema] = None

    def __init__(self, retry: Optional[RetryConfig] = None, tz_name: Optional[str] = None):
        self.retry = retry or RetryConfig()
        if tz_name and tz_name != self.schema.tz_name:
            self.schema = replace(self.schema, tz_name=tz_name)
            if self.source_schema is not None:
                self.source_schema = replace(self.source_schema, tz_name=tz_name)
        self.table: Optional[PartitionedTable] = None
        self.source: Optional[PartitionedTable] = None

    @property
    def partition_by(self) -> PartitionBy:
        return self.schema.partition_by

    @property
    def max_attempts(self) -> int:
        return self.retry.default_max_attempts

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.retry.base_delay,
            max_delay=self.retry.max_delay,
        )

    @staticmethod
    def order_key(record: Any) -> Tuple:
        return record.order_key

    def prepare(self, store: PartitionedStore) -> PartitionedTable:
        """
        Open the job's table (and source table for dependent jobs).

        Raises:
            DependencyNotReadyError: The source table has no committed data
        """
        self.table = store.open_table(self.schema)
        if self.source_schema is not None:
            self.source = store.open_table(self.source_schema)
            if self.source.last_committed_timestamp() is None:
                raise DependencyNotReadyError(
                    f"{self.name} needs {self.source_schema.name} to be backfilled first"
                )
        return self.table

    @abstractmethod
    def build_units(self, planner: WorkPlanner, partition_key: str,
                    start: date, end: date) -> List[WorkUnit]:
        """Work units for ``[start, end)`` of one partition."""

    @abstractmethod
    def fetch(self, unit: WorkUnit) -> List[Any]:
        """Fetch one unit, raising the tagged fetch errors on failure."""
