"""
Work planning and resume-point computation.
"""
import logging
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from common.models.data_models import Batch, PartitionMetadata, WorkUnit
from common.models.partitions import DEFAULT_MARKET_TIMEZONE, PartitionBy, ns_to_date
from ingestion.pipeline.market_calendar import SessionCalendar

logger = logging.getLogger(__name__)

UnitBuilder = Callable[[str, date, date], List[WorkUnit]]


class WorkPlanner:
    """
    Turns a target date range plus committed partition metadata into batches.

    Rules:
    - A partition with committed metadata that is older than the latest
      committed partition is closed and never fetched again.
    - The latest committed partition is open. It is always fetched again:
      replaced wholesale when ``refresh_open_partition`` is set (the batch is
      widened to every committed day outside the requested range), otherwise
      resumed from the day after its last committed timestamp.
    - Partitions without metadata are fetched in full.
    """

    def __init__(self, calendar: SessionCalendar, reverse: bool = True,
                 refresh_open_partition: bool = True,
                 tz_name: str = DEFAULT_MARKET_TIMEZONE):
        """
        Initialize work planner.

        Args:
            calendar: Session calendar collaborator
            reverse: Emit the most recent partitions first
            refresh_open_partition: Replace (True) or append to (False) the open partition
            tz_name: Market timezone used to map timestamps to dates
        """
        self.calendar = calendar
        self.reverse = reverse
        self.refresh_open_partition = refresh_open_partition
        self.tz_name = tz_name

    @staticmethod
    def open_partition_key(metadata: Dict[str, PartitionMetadata]) -> Optional[str]:
        """Latest partition with committed data, if any."""
        return max(metadata) if metadata else None

    def plan(self, partition_by: PartitionBy, metadata: Dict[str, PartitionMetadata],
             start: date, end: date, build_units: UnitBuilder) -> List[Batch]:
        """
        Plan batches for ``[start, end)``.

        Args:
            partition_by: Partition granularity of the target table
            metadata: Committed partition metadata keyed by partition key
            start: First date to ingest
            end: Exclusive end date
            build_units: ``(partition_key, start, end) -> units`` for one partition

        Returns:
            Ordered list of batches, one per partition with work to do
        """
        open_key = self.open_partition_key(metadata)
        batches: List[Batch] = []

        for key in partition_by.keys_between(start, end):
            span_start, span_end = partition_by.span(key)
            batch_start = max(span_start, start)
            batch_end = min(span_end, end)
            meta = metadata.get(key)
            replace = False

            if meta is not None and key != open_key:
                continue
            if meta is not None:
                if self.refresh_open_partition:
                    replace = True
                    if meta.from_ts is not None:
                        # The partition is truncated whole, so every committed day is refetched
                        batch_start = min(batch_start, ns_to_date(meta.from_ts, self.tz_name))
                        batch_end = max(batch_end, ns_to_date(meta.to_ts, self.tz_name) + timedelta(days=1))
                elif meta.to_ts is not None:
                    resume = ns_to_date(meta.to_ts, self.tz_name) + timedelta(days=1)
                    batch_start = max(batch_start, resume)

            if batch_start >= batch_end:
                continue
            units = build_units(key, batch_start, batch_end)
            if not units:
                continue
            batches.append(Batch(
                partition_key=key,
                start=batch_start,
                end=batch_end,
                units=tuple(units),
                replace=replace,
            ))

        if self.reverse:
            batches.reverse()
        logger.info(
            f"Planned {len(batches)} batches / {sum(len(b.units) for b in batches)} units "
            f"for {start}..{end} (open partition: {open_key or 'none'})"
        )
        return batches

    def session_units(self, partition_key: str, start: date, end: date) -> List[WorkUnit]:
        """One unit per trading session in ``[start, end)``."""
        return [
            WorkUnit(key=day.isoformat(), partition_key=partition_key,
                     start=day, end=day + timedelta(days=1))
            for day in self.calendar.sessions(start, end)
        ]

    def symbol_units(self, partition_key: str, start: date, end: date,
                     symbols: Iterable[str]) -> List[WorkUnit]:
        """One unit per symbol covering ``[start, end)``, sorted by symbol."""
        return [
            WorkUnit(key=f"{symbol}@{partition_key}", partition_key=partition_key,
                     start=start, end=end, symbol=symbol)
            for symbol in sorted(set(symbols))
        ]
