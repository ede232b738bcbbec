"""
Record store gateway: the only code in the job that speaks SQL.

The update job needs four things from the database: a row count, a page of rows
by offset/limit, a transaction scope, and a bulk insert-or-replace keyed on `id`
that touches only `score` and `updated_at`. `RecordStore` is that contract;
`PostgresRecordStore` implements it on a psycopg connection pool.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, ContextManager, Iterator, Optional, Protocol, Sequence, runtime_checkable

from psycopg import Connection
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from score_updater.config import Settings, get_settings
from score_updater.domain.models import Record, ScoreUpdate
from score_updater.infrastructure.db_factory import (
    TRANSIENT_DB_ERRORS,
    apply_statement_timeout,
    build_dsn,
    get_sync_pool,
)
from score_updater.utils.logging import get_logger

log = get_logger(__name__)

COUNT_SQL = "SELECT COUNT(id) FROM public.users;"

# Ordered by primary key so a page boundary does not move when the run's own
# upserts rewrite heap tuples.
FETCH_PAGE_SQL = (
    "SELECT id, score, inserted_at, updated_at FROM public.users "
    "ORDER BY id LIMIT %s OFFSET %s;"
)

UPSERT_SQL = (
    "INSERT INTO public.users (id, score, inserted_at, updated_at) "
    "VALUES (%s, %s, %s, %s) "
    "ON CONFLICT (id) DO UPDATE "
    "SET score = EXCLUDED.score, updated_at = EXCLUDED.updated_at;"
)


@runtime_checkable
class RecordStore(Protocol):
    """
    Persistence interface consumed by the batch pipeline.

    `transaction()` returns a context manager whose value is an opaque scope;
    `upsert_batch` must only be called with a scope that is still open. Leaving
    the context normally commits, leaving it with an exception rolls back.
    """

    def count(self) -> int: ...

    def fetch_page(self, offset: int, limit: int) -> Iterator[Record]: ...

    def transaction(self) -> ContextManager[Any]: ...

    def upsert_batch(self, updates: Sequence[ScoreUpdate], scope: Any) -> int: ...


class PostgresRecordStore:
    """
    `RecordStore` backed by a psycopg `ConnectionPool`.

    Each call checks a connection out of the pool for its own duration, so the
    number of connections in use tracks the number of in-flight batches.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        pool: Optional[ConnectionPool] = None,
        dsn_override: Optional[str] = None,
        fetch_size: int = 100,
    ) -> None:
        self._settings = settings or get_settings()
        self._dsn_override = dsn_override
        self._pool_instance: ConnectionPool | None = pool
        self._owns_pool = False
        self.fetch_size = fetch_size

    def _get_pool(self) -> ConnectionPool:
        if self._pool_instance is not None:
            return self._pool_instance
        if self._dsn_override:
            self._pool_instance = ConnectionPool(
                conninfo=self._dsn_override,
                min_size=self._settings.db_pool_min_size,
                max_size=self._settings.pool_max_size,
                open=True,
            )
            self._owns_pool = True
        else:
            self._pool_instance = get_sync_pool(
                dsn=build_dsn(self._settings),
                min_size=self._settings.db_pool_min_size,
                max_size=self._settings.pool_max_size,
            )
        return self._pool_instance

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(TRANSIENT_DB_ERRORS),
        reraise=True,
    )
    def count(self) -> int:
        """Total live rows. Retried on transient errors; it runs before any batch."""
        with self._get_pool().connection() as conn:
            with conn.cursor() as cur:
                cur.execute(COUNT_SQL)
                row = cur.fetchone()
        return int(row[0]) if row else 0

    def fetch_page(self, offset: int, limit: int) -> Iterator[Record]:
        """
        Lazily yield the rows at `[offset, offset + limit)` in primary-key order.

        The pooled connection is held until the generator is exhausted or closed.
        """
        with self._get_pool().connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(FETCH_PAGE_SQL, (limit, offset))
                while True:
                    rows = cur.fetchmany(self.fetch_size)
                    if not rows:
                        break
                    for row in rows:
                        yield Record(**row)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        with self._get_pool().connection() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    apply_statement_timeout(cur, self._settings.db_statement_timeout_ms)
                yield conn

    def upsert_batch(self, updates: Sequence[ScoreUpdate], scope: Connection) -> int:
        """
        Insert-or-replace `updates` on `scope`, replacing only score and updated_at.

        Returns the number of rows sent. Nothing is committed here; the caller's
        transaction decides.
        """
        if not updates:
            return 0
        with scope.cursor() as cur:
            cur.executemany(UPSERT_SQL, [update.as_params() for update in updates])
        return len(updates)

    def close(self) -> None:
        """Close the pool if this store created it; the shared pool is closed at exit."""
        if self._owns_pool and self._pool_instance is not None:
            self._pool_instance.close()
        self._pool_instance = None
        self._owns_pool = False


__all__ = [
    "COUNT_SQL",
    "FETCH_PAGE_SQL",
    "UPSERT_SQL",
    "PostgresRecordStore",
    "RecordStore",
]
