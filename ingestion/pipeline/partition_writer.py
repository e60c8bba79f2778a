"""
Sequential, verified commit of a sorted batch to a partitioned table.
"""
import logging
from dataclasses import dataclass
from typing import Sequence

from common.errors import StorageError, WriteVerificationError
from common.models.data_models import Batch
from storage.interfaces import PartitionedTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitResult:
    """Outcome of one partition commit."""
    partition_key: str
    prior_rows: int
    written: int
    row_count: int
    replaced: bool = False


class PartitionWriter:
    """
    Writes one batch into its partition and verifies the row count.

    Only the coordinating thread calls ``commit``; the table is never written
    concurrently. In replace mode the truncation is staged with the new rows
    and applied by the same ``flush``.
    """

    def __init__(self, table: PartitionedTable):
        self.table = table

    def commit(self, batch: Batch, records: Sequence) -> CommitResult:
        """
        Append ``records`` (already sorted) to ``batch.partition_key``.

        Args:
            batch: Batch the records were fetched for
            records: Sorted records exposing ``ts`` and ``to_row()``

        Returns:
            CommitResult with the verified row count

        Raises:
            StorageError: A record does not belong to the batch's partition
            WriteVerificationError: Row count after flush != prior + written
        """
        key = batch.partition_key
        partition_by = self.table.partition_by
        tz_name = self.table.tz_name

        for record in records:
            record_key = partition_by.key_for_ts(record.ts, tz_name)
            if record_key != key:
                raise StorageError(
                    f"{self.table.name}: record {record.symbol}@{record.ts} belongs to "
                    f"partition {record_key}, not {key}"
                )

        if batch.replace:
            self.table.truncate_partition(key)
            prior = 0
        else:
            prior = self.table.row_count(key)

        self.table.stage_partition(key)
        for record in records:
            self.table.append_record(record.to_row())
        self.table.flush()

        expected = prior + len(records)
        actual = self.table.row_count(key)
        if actual != expected:
            raise WriteVerificationError(self.table.name, key, expected, actual)

        logger.info(
            f"{self.table.name}/{key}: committed {len(records)} rows "
            f"({'replaced' if batch.replace else f'{prior} prior'}), total {actual}"
        )
        return CommitResult(
            partition_key=key,
            prior_rows=prior,
            written=len(records),
            row_count=actual,
            replaced=batch.replace,
        )
