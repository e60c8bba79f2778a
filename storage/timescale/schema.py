"""
Schema management for TimescaleDB.

Every backfill table is a hypertable over an integer ``ts`` column holding UTC
epoch nanoseconds, with an extra ``partition_key`` column so a whole partition
can be counted, truncated and summarised with one indexed predicate.
"""
import logging

from psycopg2 import sql

from common.models.partitions import NANOS_PER_DAY, PartitionBy
from storage.interfaces import TableSchema

logger = logging.getLogger(__name__)

META_TABLE = "partition_meta"

CHUNK_INTERVALS = {
    PartitionBy.YEAR: 365 * NANOS_PER_DAY,
    PartitionBy.MONTH: 31 * NANOS_PER_DAY,
    PartitionBy.DAY: NANOS_PER_DAY,
}


class SchemaManager:
    """
    Creates backfill tables and the shared partition metadata table.
    """

    def __init__(self, pool):
        """
        Initialize schema manager.

        Args:
            pool: PostgresConnectionPool instance
        """
        self.pool = pool

    def initialize_schema(self):
        """Create the TimescaleDB extension and the metadata table."""
        with self.pool.cursor() as cur:
            self._create_timescaledb_extension(cur)
            self._create_meta_table(cur)
        logger.info("Database schema initialized")

    def _create_timescaledb_extension(self, cur):
        cur.execute("CREATE EXTENSION IF NOT EXISTS timescaledb CASCADE;")
        logger.debug("TimescaleDB extension created")

    def _create_meta_table(self, cur):
        cur.execute(sql.SQL("""
            CREATE TABLE IF NOT EXISTS {} (
                table_name TEXT NOT NULL,
                partition_key TEXT NOT NULL,
                row_count BIGINT NOT NULL,
                from_ts BIGINT,
                to_ts BIGINT,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                PRIMARY KEY (table_name, partition_key)
            );
        """).format(sql.Identifier(META_TABLE)))

    def create_table(self, schema: TableSchema):
        """Create one partitioned hypertable if it does not exist."""
        table = sql.Identifier(schema.name)
        columns = sql.SQL(", ").join(
            sql.SQL("{} {} NOT NULL").format(sql.Identifier(column.name), sql.SQL(column.sql_type))
            if column.name in ("ts", "symbol") else
            sql.SQL("{} {}").format(sql.Identifier(column.name), sql.SQL(column.sql_type))
            for column in schema.columns
        )

        with self.pool.cursor() as cur:
            cur.execute(sql.SQL(
                "CREATE TABLE IF NOT EXISTS {} ({}, partition_key TEXT NOT NULL);"
            ).format(table, columns))

            cur.execute(
                "SELECT create_hypertable(%s, 'ts', chunk_time_interval => %s, if_not_exists => TRUE);",
                (schema.name, CHUNK_INTERVALS[schema.partition_by]),
            )

            cur.execute(sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {} (partition_key);").format(
                sql.Identifier(f"idx_{schema.name}_partition"), table))
            cur.execute(sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {} (symbol, ts DESC);").format(
                sql.Identifier(f"idx_{schema.name}_symbol"), table))

        logger.debug(f"Created table {schema.name} (partitioned by {schema.partition_by.value})")
