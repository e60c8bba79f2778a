"""TimescaleDB store - Facade Pattern delegating to specialized components."""
import logging
from typing import Dict, Optional

from common.config.settings import DatabaseConfig

from .partition_table import TimescalePartitionedTable
from .pool import PostgresConnectionPool
from .schema import SchemaManager
from storage.interfaces import TableSchema

logger = logging.getLogger(__name__)


class TimescaleStore:
    """
    Partitioned store facade over TimescaleDB.

    Delegates to:
    - PostgresConnectionPool: Connection management
    - SchemaManager: DDL operations
    - TimescalePartitionedTable: Per-table reads and buffered writes
    """

    def __init__(self, config: Optional[DatabaseConfig] = None, max_conn: int = 5):
        """
        Initialize TimescaleDB store.

        Args:
            config: Database connection settings
            max_conn: Maximum connections in pool
        """
        self.pool = PostgresConnectionPool(config, max_conn=max_conn)
        self.schema_manager = SchemaManager(self.pool)
        self._tables: Dict[str, TimescalePartitionedTable] = {}
        try:
            self.schema_manager.initialize_schema()
        except Exception:
            self.pool.close()
            raise

    def open_table(self, schema: TableSchema) -> TimescalePartitionedTable:
        """Create ``schema``'s hypertable if missing and return its handle."""
        table = self._tables.get(schema.name)
        if table is None:
            self.schema_manager.create_table(schema)
            table = TimescalePartitionedTable(self.pool, schema)
            self._tables[schema.name] = table
            logger.info(f"Opened table {schema.name}")
        return table

    def get_table(self, name: str) -> Optional[TimescalePartitionedTable]:
        return self._tables.get(name)

    def close(self):
        """Close all connections in the pool."""
        self.pool.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
