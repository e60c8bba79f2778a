"""
Partitioned hypertable handle with buffered, transactional writes.
"""
import logging
from typing import Dict, List, Optional, Sequence, Set

from psycopg2 import extras, sql

from common.errors import StorageError
from common.models.data_models import PartitionMetadata
from storage.interfaces import TableSchema
from storage.timescale.schema import META_TABLE

logger = logging.getLogger(__name__)


class TimescalePartitionedTable:
    """
    One backfill table stored as a TimescaleDB hypertable.

    Appends and truncations are buffered in memory and applied by ``flush()``
    inside a single transaction together with the ``partition_meta`` rows of
    the partitions they touched. A failed flush leaves the table unchanged.
    """

    def __init__(self, pool, schema: TableSchema, page_size: int = 5000):
        """
        Initialize table handle.

        Args:
            pool: PostgresConnectionPool instance
            schema: Table layout
            page_size: Rows per execute_batch round trip
        """
        self.pool = pool
        self.schema = schema
        self.name = schema.name
        self.partition_by = schema.partition_by
        self.tz_name = schema.tz_name
        self.page_size = page_size

        self._staged: Optional[str] = None
        self._rows: List[tuple] = []
        self._truncate: List[str] = []
        self._touched: List[str] = []

        self._table = sql.Identifier(self.name)
        self._insert = sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
            self._table,
            sql.SQL(", ").join(sql.Identifier(c) for c in schema.column_names + ("partition_key",)),
            sql.SQL(", ").join(sql.Placeholder() * (len(schema.columns) + 1)),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def partition_metadata(self) -> Dict[str, PartitionMetadata]:
        with self.pool.cursor() as cur:
            cur.execute(
                sql.SQL(
                    "SELECT partition_key, row_count, from_ts, to_ts FROM {} "
                    "WHERE table_name = %s"
                ).format(sql.Identifier(META_TABLE)),
                (self.name,),
            )
            rows = cur.fetchall()
        return {
            key: PartitionMetadata(partition_key=key, row_count=count, from_ts=from_ts, to_ts=to_ts)
            for key, count, from_ts, to_ts in rows
        }

    def last_committed_timestamp(self, partition_key: Optional[str] = None) -> Optional[int]:
        query = sql.SQL("SELECT max(to_ts) FROM {} WHERE table_name = %s").format(
            sql.Identifier(META_TABLE))
        params: tuple = (self.name,)
        if partition_key is not None:
            query += sql.SQL(" AND partition_key = %s")
            params += (partition_key,)
        with self.pool.cursor() as cur:
            cur.execute(query, params)
            row = cur.fetchone()
        return row[0] if row else None

    def row_count(self, partition_key: str) -> int:
        with self.pool.cursor() as cur:
            cur.execute(
                sql.SQL("SELECT count(*) FROM {} WHERE partition_key = %s").format(self._table),
                (partition_key,),
            )
            return int(cur.fetchone()[0])

    def scan_symbols_with_activity(self, start_ns: int, end_ns: int,
                                   min_volume: Optional[int] = None) -> Set[str]:
        query = sql.SQL("SELECT DISTINCT symbol FROM {} WHERE ts >= %s AND ts < %s").format(self._table)
        params: tuple = (start_ns, end_ns)
        if min_volume is not None:
            if self.schema.volume_column is None:
                raise StorageError(f"{self.name} has no volume column")
            query += sql.SQL(" AND {} > %s").format(sql.Identifier(self.schema.volume_column))
            params += (min_volume,)
        with self.pool.cursor() as cur:
            cur.execute(query, params)
            return {row[0] for row in cur.fetchall()}

    # ------------------------------------------------------------------
    # Buffered writes
    # ------------------------------------------------------------------
    def stage_partition(self, partition_key: str) -> None:
        self._staged = partition_key
        if partition_key not in self._touched:
            self._touched.append(partition_key)

    def truncate_partition(self, partition_key: str) -> None:
        self._truncate.append(partition_key)
        if partition_key not in self._touched:
            self._touched.append(partition_key)

    def append_record(self, row: Sequence) -> None:
        if self._staged is None:
            raise StorageError(f"{self.name}: append_record called before stage_partition")
        if len(row) != len(self.schema.columns):
            raise StorageError(
                f"{self.name}: row has {len(row)} values, expected {len(self.schema.columns)}"
            )
        self._rows.append(tuple(row) + (self._staged,))

    def flush(self) -> None:
        """Apply buffered truncations and rows, then refresh partition metadata."""
        if not self._touched:
            return
        try:
            with self.pool.cursor() as cur:
                for key in self._truncate:
                    cur.execute(
                        sql.SQL("DELETE FROM {} WHERE partition_key = %s").format(self._table), (key,))
                if self._rows:
                    extras.execute_batch(cur, self._insert, self._rows, page_size=self.page_size)
                for key in self._touched:
                    self._refresh_metadata(cur, key)
            logger.debug(
                f"{self.name}: flushed {len(self._rows)} rows into {', '.join(self._touched)}"
            )
        finally:
            self._staged = None
            self._rows = []
            self._truncate = []
            self._touched = []

    def _refresh_metadata(self, cur, partition_key: str) -> None:
        cur.execute(
            sql.SQL("SELECT count(*), min(ts), max(ts) FROM {} WHERE partition_key = %s").format(self._table),
            (partition_key,),
        )
        count, from_ts, to_ts = cur.fetchone()
        # Empty partitions keep a zero-count row so they are not planned again
        meta = sql.Identifier(META_TABLE)
        cur.execute(
            sql.SQL("""
                INSERT INTO {} (table_name, partition_key, row_count, from_ts, to_ts, updated_at)
                VALUES (%s, %s, %s, %s, %s, now())
                ON CONFLICT (table_name, partition_key) DO UPDATE SET
                    row_count = EXCLUDED.row_count,
                    from_ts = EXCLUDED.from_ts,
                    to_ts = EXCLUDED.to_ts,
                    updated_at = EXCLUDED.updated_at
            """).format(meta),
            (self.name, partition_key, count, from_ts, to_ts),
        )
