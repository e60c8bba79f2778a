"""
PostgreSQL connection pool manager for TimescaleDB.

Provides thread-safe connection pooling with proper resource management.
"""
import logging
from contextlib import contextmanager
from typing import Optional

import psycopg2
from psycopg2 import pool

from common.config.settings import DatabaseConfig
from common.errors import StorageError

logger = logging.getLogger(__name__)


class PostgresConnectionPool:
    """
    Thread-safe PostgreSQL connection pool.

    Batches are written from a single coordinating thread, but metadata reads
    and symbol scans also run during planning, so connections are handed out
    per operation rather than held by a table.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None, min_conn: int = 1, max_conn: int = 5):
        """
        Initialize connection pool.

        Args:
            config: Connection settings (defaults read from DB_* env vars)
            min_conn: Minimum connections in pool
            max_conn: Maximum connections in pool
        """
        self.config = config or DatabaseConfig()
        self.min_conn = min_conn
        self.max_conn = max_conn

        try:
            self.pool = psycopg2.pool.ThreadedConnectionPool(
                minconn=min_conn,
                maxconn=max_conn,
                host=self.config.host,
                port=self.config.port,
                database=self.config.database,
                user=self.config.user,
                password=self.config.password
            )
        except psycopg2.Error as e:
            logger.error(f"Failed to create connection pool: {e}")
            raise StorageError(
                f"cannot connect to {self.config.host}:{self.config.port}/{self.config.database}: {e}"
            ) from e
        logger.info(
            f"Connection pool created: {self.config.host}:{self.config.port}/{self.config.database} "
            f"(min={min_conn}, max={max_conn})"
        )

    @contextmanager
    def get_connection(self):
        """
        Context manager for getting a connection from the pool.

        Commits on success, rolls back on error, and returns the connection
        to the pool.

        Yields:
            psycopg2 connection object
        """
        conn = self.pool.getconn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            logger.error(f"Database error in connection context: {e}")
            raise
        finally:
            self.pool.putconn(conn)

    @contextmanager
    def cursor(self):
        """One-transaction cursor; psycopg2 errors surface as StorageError."""
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cur:
                    yield cur
        except psycopg2.Error as e:
            raise StorageError(str(e).strip()) from e

    def close(self):
        """Close all connections in the pool."""
        if getattr(self, 'pool', None):
            self.pool.closeall()
            logger.info("Connection pool closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
