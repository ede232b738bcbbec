"""
Database connection factory utilities for the score updater.

Provides centralized management of the PostgreSQL connection pool shared by
every batch worker. The PoolManager singleton ensures the pool is closed on
application exit.

Includes retry logic for transient connection failures using tenacity. Retries
apply to connection acquisition only; batch writes are never retried here.
"""

from __future__ import annotations

import atexit
import threading
from typing import Optional

import psycopg
from psycopg import Connection, sql
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from score_updater.config import Settings, get_settings
from score_updater.utils.logging import get_logger

log = get_logger(__name__)

TRANSIENT_DB_ERRORS = (psycopg.OperationalError, psycopg.InterfaceError)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def apply_statement_timeout(cur: psycopg.Cursor, timeout_ms: int) -> None:
    """
    Scope a statement timeout to the current transaction. A value of 0 disables it.
    """
    if timeout_ms <= 0:
        return
    cur.execute(
        sql.SQL("SET LOCAL statement_timeout = {}").format(sql.Literal(f"{int(timeout_ms)}ms"))
    )


class PoolManager:
    """
    Thread-safe singleton for managing the database connection pools.

    Pools are keyed on (dsn, min_size, max_size), so callers configured for a
    different database or a larger concurrency never share an undersized pool.
    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._sync_pools = {}
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_sync_pool(
        self, min_size: int = 1, max_size: int = 10, dsn: Optional[str] = None
    ) -> ConnectionPool:
        """
        Get or create the synchronous connection pool for `dsn` and sizes.

        Parameters
        ----------
        min_size : int
            Minimum number of idle connections to keep.
        max_size : int
            Maximum total connections in the pool. Should be at least the
            number of concurrent batches.
        dsn : str, optional
            Target database. Defaults to the DSN built from environment settings.

        Returns
        -------
        ConnectionPool
            The managed pool instance.
        """
        conninfo = dsn or build_dsn()
        key = (conninfo, min_size, max_size)
        with self._lock:
            pool = self._sync_pools.get(key)
            if pool is None:
                pool = ConnectionPool(
                    conninfo=conninfo,
                    min_size=min_size,
                    max_size=max_size,
                    open=True,
                    name="score_updater",
                )
                self._sync_pools[key] = pool
                log.debug(
                    "Connection pool opened",
                    extra={"pool_min_size": min_size, "pool_max_size": max_size},
                )
            return pool

    def close_all(self) -> None:
        """
        Close every managed pool and release resources.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            pools = list(self._sync_pools.values())
            self._sync_pools.clear()
        for pool in pools:
            pool.close()


def get_sync_pool(
    min_size: int = 1, max_size: int = 10, dsn: Optional[str] = None
) -> ConnectionPool:
    """
    Get or create a shared connection pool via PoolManager.
    """
    return PoolManager().get_sync_pool(min_size=min_size, max_size=max_size, dsn=dsn)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(TRANSIENT_DB_ERRORS),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.
    Use this for one-off operations (connectivity checks, seeding). The update
    job itself goes through the pool.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn())


__all__ = [
    "PoolManager",
    "TRANSIENT_DB_ERRORS",
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
    "get_sync_pool",
]
