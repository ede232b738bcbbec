"""
Run coordinator for the bulk score update.

Usage (example from an ops task):
    from score_updater.updater import update_all_scores

    total_rows, num_batches, elapsed_seconds = update_all_scores()

`ScoreUpdater.run()` returns the full `RunReport` (per-batch outcomes, profile)
for callers that need to detect degraded runs. Reports can be saved with
`persist_report`:
- `results/latest.json` (last run)
- `results/run-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import json
import logging
import random
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Optional

from score_updater.batching.builder import BatchBuilder
from score_updater.batching.scheduler import BatchScheduler
from score_updater.batching.transformer import RowTransformer, utc_now_seconds
from score_updater.batching.writer import TransactionalBatchWriter
from score_updater.config import Settings, get_settings
from score_updater.domain.models import RunReport, RunResult
from score_updater.errors import BatchFailedError
from score_updater.infrastructure.record_store import PostgresRecordStore, RecordStore
from score_updater.utils.logging import get_logger
from score_updater.utils.profiler import ProfileStats, profile_block

log = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ScoreUpdater:
    """
    Wire the transformer, builder, writer and scheduler for one store and run them.

    Parameters
    ----------
    store : RecordStore
        Gateway to the `users` table.
    settings : Settings | None
        Job parameters; defaults to the cached environment settings.
    rng : random.Random | None
        Source for score increments. Defaults to `Random(settings.random_seed)`.
    clock : callable | None
        Returns the run's start/end timestamps.
    row_clock : callable | None
        Returns the `updated_at` stamped on each row (truncated to seconds).
    logger : logging.Logger | None
        Destination for the run's start/finish/summary lines and for the
        scheduler and builder records of this run.
    profile : bool
        Whether to sample RSS/CPU while the batches run.
    """

    def __init__(
        self,
        store: RecordStore,
        settings: Optional[Settings] = None,
        *,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = _utc_now,
        row_clock: Callable[[], datetime] = utc_now_seconds,
        logger: Optional[logging.Logger] = None,
        profile: bool = True,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self.rng = rng or random.Random(self.settings.random_seed)
        self._clock = clock
        self._row_clock = row_clock
        self._logger = logger
        self._log = logger or log
        self._profile = profile

    def build_scheduler(self) -> BatchScheduler:
        settings = self.settings
        transformer = RowTransformer(
            max_increment=settings.max_increment, rng=self.rng, clock=self._row_clock
        )
        builder = BatchBuilder(
            self.store,
            transformer,
            batch_size=settings.batch_size,
            transform_concurrency=settings.transform_concurrency,
            logger=self._logger,
        )
        return BatchScheduler(
            builder,
            TransactionalBatchWriter(self.store),
            max_concurrency=settings.max_concurrency,
            failure_policy=settings.failure_policy,
            logger=self._logger,
        )

    def run(self) -> RunReport:
        started_at = self._clock()
        self._log.info(
            f"Starting update at: {started_at.isoformat()}",
            extra={"started_at": started_at.isoformat()},
        )

        total_rows = self.store.count()
        scheduler = self.build_scheduler()
        num_batches = scheduler.num_batches(total_rows)
        self._log.debug(
            f"[PLAN] {total_rows} rows -> {num_batches} batches",
            extra={
                "total_rows": total_rows,
                "num_batches": num_batches,
                "batch_size": self.settings.batch_size,
                "max_concurrency": self.settings.max_concurrency,
            },
        )

        stats: Optional[ProfileStats] = None
        try:
            if self._profile:
                with profile_block("update_all_scores") as stats:
                    outcomes = scheduler.run(total_rows)
            else:
                outcomes = scheduler.run(total_rows)
        except BatchFailedError as exc:
            self._log.error(
                f"[RUN ABORTED] {len(exc.failed)} of {num_batches} batches failed",
                extra={
                    "total_rows": total_rows,
                    "num_batches": num_batches,
                    "failed_batches": [o.batch_index for o in exc.failed],
                },
            )
            raise

        finished_at = self._clock()
        elapsed_seconds = max(int((finished_at - started_at).total_seconds()), 0)
        self._log.info(
            f"Finishing update at: {finished_at.isoformat()}",
            extra={"finished_at": finished_at.isoformat()},
        )

        report = RunReport(
            result=RunResult(total_rows, num_batches, elapsed_seconds),
            started_at=started_at,
            finished_at=finished_at,
            failure_policy=self.settings.failure_policy,
            outcomes=outcomes,
            profile=stats,
        )
        self._log_summary(report)
        return report

    def _log_summary(self, report: RunReport) -> None:
        result = report.result
        extra = {
            "total_rows": result.total_rows,
            "num_batches": result.num_batches,
            "elapsed_seconds": result.elapsed_seconds,
            "rows_written": report.rows_written,
        }
        message = (
            f"Total rows: {result.total_rows} | Number of batches: {result.num_batches} | "
            f"Total time: {result.elapsed_seconds}s"
        )
        if report.degraded:
            extra["failed_batches"] = [o.batch_index for o in report.failed_batches]
            self._log.warning(f"{message} | Failed batches: {len(report.failed_batches)}", extra=extra)
        else:
            self._log.info(message, extra=extra)


def update_all_scores(
    settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
    *,
    rng: Optional[random.Random] = None,
    logger: Optional[logging.Logger] = None,
) -> RunResult:
    """
    Add a random increment in `[0, max_increment]` to every user's score.

    Returns
    -------
    RunResult
        `(total_rows, num_batches, elapsed_seconds)`.

    Raises
    ------
    BatchFailedError
        Strict failure policy, when any batch fails.
    psycopg.Error
        When the initial count (or pool creation) fails.
    """
    settings = settings or get_settings()
    owned_store: Optional[PostgresRecordStore] = None
    if store is None:
        owned_store = PostgresRecordStore(settings=settings)
        store = owned_store
    try:
        return ScoreUpdater(store, settings, rng=rng, logger=logger).run().result
    finally:
        if owned_store is not None:
            owned_store.close()


def persist_report(report: RunReport, results_dir: Path | str = "results") -> Path:
    """Write the report as `latest.json` plus a timestamped archive; returns the archive path."""
    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = report.finished_at.strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    payload = report.to_dict()
    for path in (latest_path, archive_path):
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)

    log.info("Report persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})
    return archive_path


__all__ = ["ScoreUpdater", "persist_report", "update_all_scores"]
