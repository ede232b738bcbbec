"""
Seed script for the score updater.

Generates deterministic pseudo-random users as CSV and loads them into Postgres
with COPY, creating the table from `db/init.sql` when it is missing.
"""

from __future__ import annotations

import csv
import random
import sys
import tempfile
import time
from datetime import UTC, datetime
from pathlib import Path

import psycopg
import typer

from score_updater.infrastructure.db_factory import build_dsn, get_sync_connection

app = typer.Typer(help="Generate synthetic users and load them into Postgres (CSV + COPY).")

INIT_SQL_PATH = Path(__file__).resolve().parent.parent / "db" / "init.sql"
CSV_HEADER = ["score", "inserted_at", "updated_at"]


def _build_dsn(dsn_override: str | None) -> str:
    if dsn_override:
        return dsn_override
    return build_dsn()


def _generate_rows_csv(csv_path: Path, rows: int, seed: int, max_score: int = 1_000) -> None:
    rng = random.Random(seed)
    now = datetime.now(UTC).replace(tzinfo=None, microsecond=0).isoformat(sep=" ")

    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for _ in range(rows):
            writer.writerow([rng.randint(0, max_score), now, now])


def _ensure_schema(conn: psycopg.Connection) -> None:
    with conn.cursor() as cur:
        cur.execute(INIT_SQL_PATH.read_text(encoding="utf-8"))
    conn.commit()


def _copy_into_db(dsn: str, csv_path: Path) -> None:
    with get_sync_connection(dsn) as conn:
        _ensure_schema(conn)
        with conn.cursor() as cur:
            with cur.copy(
                "COPY public.users (score, inserted_at, updated_at) "
                "FROM STDIN WITH (FORMAT csv, HEADER TRUE)"
            ) as copy:
                with csv_path.open("r", encoding="utf-8") as f:
                    for line in f:
                        copy.write(line)
        conn.commit()


@app.command()
def main(
    rows: int = typer.Option(10_000, "--rows", "-r", help="Number of users to generate."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Optional CSV output path (if omitted, a temp file will be used).",
    ),
    dsn: str | None = typer.Option(None, "--dsn", help="Optional DSN override for Postgres."),
    no_load: bool = typer.Option(False, "--no-load", help="Only generate CSV; skip loading."),
) -> None:
    """
    Generate synthetic users and optionally load them into Postgres using COPY.
    """
    start = time.perf_counter()
    if output:
        csv_path = output
        csv_path.parent.mkdir(parents=True, exist_ok=True)
    else:
        csv_path = Path(tempfile.mkdtemp(prefix="score_updater_csv_")) / "users.csv"

    typer.echo(f"Generating {rows:,} users -> {csv_path} (seed={seed})")
    _generate_rows_csv(csv_path, rows=rows, seed=seed)

    if no_load:
        typer.echo("Skipping load (no-load flag set).")
        return

    typer.echo("Loading CSV into Postgres via COPY...")
    _copy_into_db(_build_dsn(dsn), csv_path)
    typer.echo(f"Done in {time.perf_counter() - start:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
