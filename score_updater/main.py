from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from score_updater.config import get_settings
from score_updater.errors import BatchFailedError
from score_updater.infrastructure.db_factory import build_dsn, get_sync_connection
from score_updater.infrastructure.record_store import PostgresRecordStore
from score_updater.reporter import print_report
from score_updater.updater import ScoreUpdater, persist_report
from score_updater.utils.logging import configure_logging

app = typer.Typer(help="Bulk score updater CLI.")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"batch={settings.batch_size} max_increment={settings.max_increment} "
        f"concurrency={settings.max_concurrency} transform_concurrency={settings.transform_concurrency} "
        f"policy={settings.failure_policy}"
    )


@app.command()
def ping() -> None:
    """
    Check that the database is reachable (retries transient failures).
    """
    with get_sync_connection(build_dsn()) as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1;")
            cur.fetchone()
    typer.echo("Database reachable.")


@app.command()
def run(
    batch_size: Optional[int] = typer.Option(
        None, "--batch-size", "-b", help="Rows per batch (default from settings)."
    ),
    max_concurrency: Optional[int] = typer.Option(
        None, "--max-concurrency", "-c", help="Batches in flight per wave."
    ),
    transform_concurrency: Optional[int] = typer.Option(
        None, "--transform-concurrency", help="Concurrent row transforms per batch."
    ),
    max_increment: Optional[int] = typer.Option(
        None, "--max-increment", help="Inclusive upper bound of the per-row score increment."
    ),
    failure_policy: Optional[str] = typer.Option(
        None, "--failure-policy", help="'strict' stops after a failing wave; 'tolerant' continues."
    ),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for the increment RNG."),
    results_dir: Path = typer.Option(
        Path("results"), "--results-dir", help="Directory for JSON run reports."
    ),
    no_persist: bool = typer.Option(False, "--no-persist", help="Do not write JSON reports."),
    json_logs: Optional[bool] = typer.Option(None, "--json-logs/--console-logs", help="Log format."),
) -> None:
    """
    Update every user's score and print the run summary.
    """
    base = get_settings()
    overrides = {
        key: value
        for key, value in {
            "batch_size": batch_size,
            "max_concurrency": max_concurrency,
            "transform_concurrency": transform_concurrency,
            "max_increment": max_increment,
            "failure_policy": failure_policy,
            "random_seed": seed,
        }.items()
        if value is not None
    }
    try:
        settings = base.model_validate({**base.model_dump(), **overrides}) if overrides else base
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        raise typer.BadParameter(problems) from exc
    configure_logging(
        level=settings.log_level,
        json_logs=settings.log_json if json_logs is None else json_logs,
    )

    store = PostgresRecordStore(settings=settings)
    try:
        report = ScoreUpdater(store, settings).run()
    except BatchFailedError as exc:
        typer.echo(f"Update aborted: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        store.close()

    print_report(report)
    if not no_persist:
        persist_report(report, results_dir)
    typer.echo(json.dumps(list(report.result)))
    if report.degraded:
        raise typer.Exit(code=2)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
