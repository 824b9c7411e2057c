"""
Production Database Connection Pool

Thread-safe PostgreSQL connection pooling for the production store. The
dashboard loader fetches several sources at once, so every worker thread
borrows its own connection from the shared pool.
"""

import threading
import time
import logging
from contextlib import contextmanager
from typing import Optional, Dict, Any

import psycopg2
from psycopg2 import pool

from oee_tracker.config import get_database_config

logger = logging.getLogger(__name__)


class ProductionDatabasePool:
    """Thread-safe connection pool for the production database."""

    def __init__(self, db_config: Optional[Dict[str, str]] = None):
        """
        Args:
            db_config: psycopg2 connection keywords. Read from the
                PRODUCTIONDB_* environment variables when omitted.

        Raises:
            ValueError: If required configuration is missing
        """
        self.db_config = dict(db_config) if db_config is not None else get_database_config()
        self.pool: Optional[pool.AbstractConnectionPool] = None
        self.pool_lock = threading.Lock()
        self.stats_lock = threading.Lock()
        self.stats = {
            "connections_used": 0,
            "connections_returned": 0,
            "direct_connections": 0,
            "pool_exhausted": 0,
            "errors": 0,
        }

    def _count(self, key: str):
        with self.stats_lock:
            self.stats[key] += 1

    def initialize_pool(self, min_connections: int = 1, max_connections: int = 8) -> bool:
        """
        Create the underlying ThreadedConnectionPool.

        Returns:
            bool: True if the pool exists after the call, False if creation failed
        """
        with self.pool_lock:
            if self.pool is not None:
                return True
            try:
                self.pool = psycopg2.pool.ThreadedConnectionPool(
                    min_connections,
                    max_connections,
                    **self.db_config
                )
            except Exception as e:
                logger.error(f"Failed to initialize production pool: {e}")
                self._count("errors")
                return False

        logger.info(
            f"Initialized production pool with {min_connections}-{max_connections} connections"
        )
        return True

    @contextmanager
    def get_connection(self):
        """
        Borrow a connection, falling back to a direct connection when the
        pool is missing or exhausted.

        Yields:
            psycopg2.connection: Database connection

        Example:
            >>> with get_pool().get_connection() as conn:
            ...     with conn.cursor() as cursor:
            ...         cursor.execute("SELECT COUNT(*) FROM machines")
        """
        connection = None
        pooled = False
        start_time = time.time()

        try:
            if self.pool is not None:
                try:
                    connection = self.pool.getconn()
                    pooled = True
                    self._count("connections_used")
                except pool.PoolError:
                    self._count("pool_exhausted")
                    logger.warning("Production pool exhausted, opening a direct connection")

            if connection is None:
                connection = psycopg2.connect(**self.db_config)
                self._count("direct_connections")

            yield connection

        except Exception as e:
            self._count("errors")
            elapsed = time.time() - start_time
            logger.error(f"Production database error after {elapsed:.2f}s: {e}")
            raise

        finally:
            if connection is not None:
                try:
                    if pooled and self.pool is not None:
                        self.pool.putconn(connection)
                        self._count("connections_returned")
                    else:
                        connection.close()
                except Exception as e:
                    logger.warning(f"Error releasing production connection: {e}")
                    self._count("errors")

    def close_pool(self):
        """Close all pooled connections."""
        with self.pool_lock:
            if self.pool is None:
                return
            try:
                self.pool.closeall()
                logger.info("Closed production connection pool")
            except Exception as e:
                logger.warning(f"Error closing production pool: {e}")
                self._count("errors")
            finally:
                self.pool = None

    def get_stats(self) -> Dict[str, Any]:
        with self.stats_lock:
            stats = self.stats.copy()
        stats["pool_initialized"] = self.pool is not None
        return stats

    def health_check(self) -> bool:
        """
        Run a trivial query.

        Returns:
            bool: True if the database answered
        """
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute("SELECT 1")
                    return cursor.fetchone() is not None
        except Exception as e:
            logger.error(f"Production database health check failed: {e}")
            return False


_production_pool: Optional[ProductionDatabasePool] = None
_pool_lock = threading.Lock()


def get_pool() -> ProductionDatabasePool:
    """
    Get or create the shared production pool.

    Raises:
        ValueError: If database configuration is missing
    """
    global _production_pool

    with _pool_lock:
        if _production_pool is None:
            _production_pool = ProductionDatabasePool()
            _production_pool.initialize_pool()
        return _production_pool


def close_pool():
    """Close and forget the shared production pool."""
    global _production_pool

    with _pool_lock:
        if _production_pool is not None:
            _production_pool.close_pool()
            _production_pool = None


@contextmanager
def get_production_connection():
    """
    Production database connection from the shared pool.

    Yields:
        psycopg2.connection: Database connection
    """
    with get_pool().get_connection() as conn:
        yield conn


def get_pool_stats() -> Dict[str, Any]:
    """Statistics of the shared pool (empty when it was never created)"""
    if _production_pool is None:
        return {}
    return _production_pool.get_stats()
