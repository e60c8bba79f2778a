"""
Runs one job through plan -> fetch -> sort -> commit, batch by batch.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, List

from ingestion.pipeline.aggregator import ResultAggregator
from ingestion.pipeline.partition_writer import CommitResult, PartitionWriter
from ingestion.pipeline.work_planner import WorkPlanner
from ingestion.pipeline.worker_pool import FetchWorkerPool
from storage.interfaces import PartitionedTable

if TYPE_CHECKING:
    from ingestion.jobs.base import IngestionJob

logger = logging.getLogger(__name__)


@dataclass
class JobResult:
    """Summary of one job run."""
    job: str
    batches: int = 0
    units: int = 0
    empty_units: int = 0
    retries: int = 0
    records: int = 0
    commits: List[CommitResult] = field(default_factory=list)
    elapsed: float = 0.0


class BatchRunner:
    """
    Coordinator for a single job.

    Batches run one after another. Within a batch, units are fetched
    concurrently; sorting and writing happen on this thread after the pool's
    barrier, so the table only ever sees one writer.
    """

    def __init__(self, planner: WorkPlanner, pool: FetchWorkerPool):
        self.planner = planner
        self.pool = pool

    def run(self, job: "IngestionJob", table: PartitionedTable, start: date, end: date) -> JobResult:
        """
        Backfill ``job`` into ``table`` for ``[start, end)``.

        Raises:
            ExhaustedRetriesError: A unit failed on every attempt
            UnitFailedError: A unit hit a fatal fetch error
            WriteVerificationError: A partition's row count did not add up
        """
        started = time.monotonic()
        result = JobResult(job=job.name)
        policy = job.retry_policy()
        writer = PartitionWriter(table)

        batches = self.planner.plan(
            job.partition_by,
            table.partition_metadata(),
            start,
            end,
            lambda key, lo, hi: job.build_units(self.planner, key, lo, hi),
        )

        for index, batch in enumerate(batches, 1):
            logger.info(
                f"{job.name}: batch {index}/{len(batches)} partition {batch.partition_key} "
                f"({len(batch.units)} units, {batch.start}..{batch.end})"
            )
            aggregator = ResultAggregator(job.order_key)
            stats = self.pool.run(
                batch.units, job.fetch, policy, aggregator,
                desc=f"{job.name} {batch.partition_key}",
            )
            records = aggregator.sorted_records()
            commit = writer.commit(batch, records)

            result.batches += 1
            result.units += stats.units
            result.empty_units += stats.empty
            result.retries += stats.retries
            result.records += commit.written
            result.commits.append(commit)

        result.elapsed = time.monotonic() - started
        return result
