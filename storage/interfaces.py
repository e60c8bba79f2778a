"""Storage interfaces using Protocol for duck typing."""
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Sequence, Set, Tuple, runtime_checkable

from common.models.data_models import PartitionMetadata
from common.models.partitions import DEFAULT_MARKET_TIMEZONE, PartitionBy


@dataclass(frozen=True)
class Column:
    name: str
    sql_type: str


@dataclass(frozen=True)
class TableSchema:
    """
    Column layout and partitioning of one table.

    The first column is always ``ts`` (UTC epoch nanoseconds) and the second
    ``symbol``; rows passed to ``append_record`` follow ``columns`` order.
    """
    name: str
    columns: Tuple[Column, ...]
    partition_by: PartitionBy
    tz_name: str = DEFAULT_MARKET_TIMEZONE
    volume_column: Optional[str] = None

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self.columns)


@runtime_checkable
class PartitionedTable(Protocol):
    """
    Protocol for an append-only table split into time partitions.

    Writes are buffered: ``truncate_partition`` and ``append_record`` take
    effect together on ``flush()``, which also refreshes the partition
    metadata of every partition it touched.
    """

    name: str
    partition_by: PartitionBy
    tz_name: str

    def partition_metadata(self) -> Dict[str, PartitionMetadata]:
        """Metadata of every committed partition (empty ones included), keyed by partition key."""
        ...

    def last_committed_timestamp(self, partition_key: Optional[str] = None) -> Optional[int]:
        """
        Latest committed ``ts`` in a partition, or in the whole table when
        ``partition_key`` is None.
        """
        ...

    def row_count(self, partition_key: str) -> int:
        """Committed rows in a partition (0 if it does not exist)."""
        ...

    def scan_symbols_with_activity(self, start_ns: int, end_ns: int,
                                   min_volume: Optional[int] = None) -> Set[str]:
        """
        Symbols with at least one row in ``[start_ns, end_ns)``.

        Args:
            start_ns: Inclusive range start
            end_ns: Exclusive range end
            min_volume: Only count rows whose volume column exceeds this value
        """
        ...

    def stage_partition(self, partition_key: str) -> None:
        """Declare the partition the following appends go to."""
        ...

    def truncate_partition(self, partition_key: str) -> None:
        """Drop every committed row of a partition on the next flush."""
        ...

    def append_record(self, row: Sequence) -> None:
        """Buffer one row for the staged partition."""
        ...

    def flush(self) -> None:
        """Apply staged truncations and appends atomically."""
        ...


@runtime_checkable
class PartitionedStore(Protocol):
    """Protocol for a store of partitioned tables."""

    def open_table(self, schema: TableSchema) -> PartitionedTable:
        """Create the table if needed and return a handle."""
        ...

    def get_table(self, name: str) -> Optional[PartitionedTable]:
        """Handle to an already opened table, if any."""
        ...

    def close(self) -> None:
        """Close all connections and cleanup resources."""
        ...
