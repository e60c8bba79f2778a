"""Sequential job runner for the historical backfill."""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from common.config.settings import BackfillConfig
from common.errors import BackfillConfigError, BackfillError
from ingestion.clients import AggregatesClient, PolygonClient, ReferenceClient, TradesClient
from ingestion.jobs import (
    JOB_ORDER,
    DailyBarsJob,
    IngestionJob,
    MinuteBarsJob,
    TickersJob,
    TradesJob,
)
from ingestion.pipeline import BatchRunner, FetchWorkerPool, JobResult, SessionCalendar, WorkPlanner
from ingestion.utils.structured_logging import StructuredLogger, get_logger
from storage.interfaces import PartitionedStore

logger = logging.getLogger(__name__)


@dataclass
class BackfillReport:
    """Outcome of a run over one or more jobs."""
    results: List[JobResult] = field(default_factory=list)
    failed_job: Optional[str] = None
    failed_unit: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


def build_jobs(config: BackfillConfig, client: PolygonClient) -> Dict[str, IngestionJob]:
    """Instantiate every job against one shared Polygon client."""
    tz_name = config.system.market_timezone
    pagination = config.pagination
    aggregates = AggregatesClient(
        client,
        page_limit=pagination.page_limit,
        minute_margin_ms=pagination.minute_margin_ms,
        tz_name=tz_name,
    )
    trades = TradesClient(
        client,
        page_limit=pagination.page_limit,
        margin_ns=pagination.trades_margin_ns,
        tz_name=tz_name,
    )
    reference = ReferenceClient(client, tz_name=tz_name)

    jobs: List[IngestionJob] = [
        DailyBarsJob(aggregates, config.retry, tz_name),
        TickersJob(reference, config.retry, tz_name),
        MinuteBarsJob(aggregates, config.retry, tz_name),
        TradesJob(trades, config.retry, tz_name),
    ]
    return {job.name: job for job in jobs}


class BackfillOrchestrator:
    """
    Runs ingestion jobs one after another against a partitioned store.

    A fatal error stops the run: the failing job is reported with the unit
    that caused it and later jobs are not started.
    """

    def __init__(self, config: BackfillConfig, store: PartitionedStore,
                 jobs: Dict[str, IngestionJob], calendar: SessionCalendar,
                 pool: Optional[FetchWorkerPool] = None,
                 structured: Optional[StructuredLogger] = None):
        """
        Initialize orchestrator.

        Args:
            config: Backfill configuration
            store: Partitioned store the jobs write to
            jobs: Jobs by name
            calendar: Trading session calendar
            pool: Worker pool (sized from config when omitted)
            structured: Run-level event logger
        """
        self.config = config
        self.store = store
        self.jobs = jobs
        self.planner = WorkPlanner(
            calendar,
            reverse=config.system.reverse_order,
            refresh_open_partition=config.system.refresh_open_partition,
            tz_name=config.system.market_timezone,
        )
        self.pool = pool or FetchWorkerPool(max_workers=config.system.max_workers)
        self.runner = BatchRunner(self.planner, self.pool)
        self.events = structured or get_logger('backfill.events')

    def today(self) -> date:
        return datetime.now(ZoneInfo(self.config.system.market_timezone)).date()

    def resolve_jobs(self, names: Optional[Sequence[str]]) -> List[IngestionJob]:
        """Jobs to run, in dependency order."""
        if not names:
            names = [name for name in JOB_ORDER if name in self.jobs]
        unknown = [name for name in names if name not in self.jobs]
        if unknown:
            raise BackfillConfigError(
                f"Unknown job(s): {', '.join(unknown)} (available: {', '.join(self.jobs)})"
            )
        ordered = sorted(names, key=lambda n: JOB_ORDER.index(n) if n in JOB_ORDER else len(JOB_ORDER))
        return [self.jobs[name] for name in ordered]

    def run(self, job_names: Optional[Sequence[str]] = None, start: Optional[date] = None,
            end: Optional[date] = None) -> BackfillReport:
        """
        Run the selected jobs over ``[start, end)``.

        Args:
            job_names: Jobs to run (all, in default order, when omitted)
            start: First date (config start_date when omitted)
            end: Exclusive end date (today's market date when omitted)

        Returns:
            BackfillReport; ``exit_code`` is non-zero after a fatal error
        """
        start = start or self.config.system.start_date
        end = end or self.today()
        if start >= end:
            raise BackfillConfigError(f"Empty date range {start}..{end}")

        report = BackfillReport()
        jobs = self.resolve_jobs(job_names)
        self.events.info("backfill_started", jobs=[job.name for job in jobs],
                         start=start.isoformat(), end=end.isoformat())

        for job in jobs:
            events = self.events.bind(job=job.name)
            events.info("job_started", table=job.schema.name,
                        partition_by=job.partition_by.value)
            try:
                table = job.prepare(self.store)
                result = self.runner.run(job, table, start, end)
            except BackfillError as e:
                unit = getattr(e, 'unit_key', None)
                report.failed_job = job.name
                report.failed_unit = unit
                report.error = e
                if unit:
                    events.error("unit_failed", unit=unit, error=str(e), error_type=type(e).__name__)
                else:
                    events.error("job_failed", error=str(e), error_type=type(e).__name__)
                break

            report.results.append(result)
            events.info(
                "job_completed",
                batches=result.batches,
                units=result.units,
                empty_units=result.empty_units,
                retries=result.retries,
                records=result.records,
                elapsed_s=round(result.elapsed, 1),
            )

        self.events.info("backfill_finished", ok=report.ok,
                         records=sum(r.records for r in report.results))
        return report
