"""
Pytest configuration for the score updater.

Provides fixtures for:
- An in-memory, thread-safe `RecordStore` with transactional staging
- Job settings built without reading `.env`
- Database connection management and seeding for integration tests
"""

from __future__ import annotations

import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Generator, Iterable, Iterator, List, Sequence

import psycopg
import pytest

from score_updater.config import Settings
from score_updater.domain.models import Record, ScoreUpdate

BASE_TIMESTAMP = datetime(2023, 3, 7, 12, 44, 21)


class FakeScope:
    """Open transaction handed to `upsert_batch`; collects staged writes."""

    def __init__(self) -> None:
        self.staged: List[ScoreUpdate] = []


class FakeRecordStore:
    """
    In-memory `RecordStore`.

    Writes are staged on the scope and applied only when the transaction context
    exits cleanly. Counters record fetches, upserts and concurrently open
    transactions so tests can check partitioning and concurrency bounds.
    """

    def __init__(
        self,
        rows: int = 0,
        fail_on_ids: Iterable[int] = (),
        write_delay: float = 0.0,
    ) -> None:
        self.rows = {
            i: Record(id=i, score=(i * 7) % 50, inserted_at=BASE_TIMESTAMP, updated_at=BASE_TIMESTAMP)
            for i in range(1, rows + 1)
        }
        self.fail_on_ids = set(fail_on_ids)
        self.write_delay = write_delay
        self.count_error: Exception | None = None
        self.closed = False

        self._lock = threading.Lock()
        self.fetch_calls: List[tuple[int, int]] = []
        self.upsert_calls = 0
        self.transactions_opened = 0
        self.commits = 0
        self.rollbacks = 0
        self.open_transactions = 0
        self.max_open_transactions = 0
        self.events: List[tuple[str, int]] = []

    def snapshot(self) -> dict[int, Record]:
        with self._lock:
            return dict(self.rows)

    def count(self) -> int:
        if self.count_error is not None:
            raise self.count_error
        with self._lock:
            return len(self.rows)

    def fetch_page(self, offset: int, limit: int) -> Iterator[Record]:
        with self._lock:
            self.fetch_calls.append((offset, limit))
            self.events.append(("fetch", offset))
            page = [self.rows[key] for key in sorted(self.rows)][offset : offset + limit]
        yield from page

    @contextmanager
    def transaction(self) -> Iterator[FakeScope]:
        scope = FakeScope()
        with self._lock:
            self.transactions_opened += 1
            self.open_transactions += 1
            self.max_open_transactions = max(self.max_open_transactions, self.open_transactions)
        try:
            yield scope
        except BaseException:
            with self._lock:
                self.rollbacks += 1
            raise
        else:
            with self._lock:
                for update in scope.staged:
                    existing = self.rows.get(update.id)
                    self.rows[update.id] = Record(
                        id=update.id,
                        score=update.score,
                        inserted_at=existing.inserted_at if existing else update.updated_at,
                        updated_at=update.updated_at,
                    )
                self.commits += 1
                first_id = min((u.id for u in scope.staged), default=0)
                self.events.append(("commit", first_id))
        finally:
            with self._lock:
                self.open_transactions -= 1

    def upsert_batch(self, updates: Sequence[ScoreUpdate], scope: FakeScope) -> int:
        with self._lock:
            self.upsert_calls += 1
        for update in updates:
            if update.id in self.fail_on_ids:
                raise RuntimeError(f"constraint violation on id={update.id}")
            scope.staged.append(update)
        self._after_stage(updates)
        return len(updates)

    def _after_stage(self, updates: Sequence[ScoreUpdate]) -> None:
        if self.write_delay:
            threading.Event().wait(self.write_delay)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_store() -> Callable[..., FakeRecordStore]:
    """Factory for `FakeRecordStore` instances."""
    return FakeRecordStore


@pytest.fixture
def fake_store_cls() -> type[FakeRecordStore]:
    """The fake store class itself, for tests that subclass it."""
    return FakeRecordStore


@pytest.fixture
def job_settings() -> Callable[..., Settings]:
    """
    Build `Settings` for unit tests without reading `.env` or the process env
    for job parameters.
    """

    def _factory(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "batch_size": 500,
            "max_increment": 100,
            "max_concurrency": 8,
            "transform_concurrency": 4,
            "failure_policy": "strict",
            "random_seed": 1234,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _factory


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Row clock pinned to a known instant (with sub-second noise to be truncated)."""
    return lambda: datetime(2024, 5, 17, 9, 30, 15, 987_654)


# --- Integration fixtures -------------------------------------------------------


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        _env_file=None,
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "user_manager"),
        log_level="DEBUG",
        batch_size=500,
        max_concurrency=8,
        random_seed=42,
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection) -> bool:
    """
    Ensure the users table exists, creating it from `db/init.sql` if necessary.
    """
    init_sql_path = Path(__file__).parent.parent / "db" / "init.sql"
    with db_connection.cursor() as cur:
        cur.execute(init_sql_path.read_text(encoding="utf-8"))
    db_connection.commit()
    return True


@pytest.fixture(scope="function")
def clean_users_table(db_connection: psycopg.Connection, db_schema_initialized: bool):
    """
    Empty the users table before and after each test function.
    """
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE public.users RESTART IDENTITY CASCADE;")
    db_connection.commit()
    yield
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE public.users RESTART IDENTITY CASCADE;")
    db_connection.commit()


@pytest.fixture(scope="function")
def seeded_users(
    db_connection: psycopg.Connection,
    clean_users_table,
    test_dsn: str,
) -> int:
    """
    Seed 1,200 users (three batches at the default batch size).

    Returns the number of rows seeded.
    """
    rows_to_seed = 1_200

    with tempfile.TemporaryDirectory() as tmpdir:
        csv_path = Path(tmpdir) / "users.csv"

        from scripts.seed_users import _copy_into_db, _generate_rows_csv

        _generate_rows_csv(csv_path, rows=rows_to_seed, seed=42)
        _copy_into_db(test_dsn, csv_path)

    with db_connection.cursor() as cur:
        cur.execute("SELECT COUNT(*) FROM public.users;")
        count = cur.fetchone()[0]
    db_connection.commit()

    return count
