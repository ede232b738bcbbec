"""
Batch scheduler: partition the table into batches and drive them in waves.

A wave is up to `max_concurrency` consecutive batch indices submitted together;
the next wave starts only after every batch of the current one has finished,
which caps in-flight transactions (and pooled connections) at `max_concurrency`.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, Optional

from score_updater.batching.builder import BatchBuilder
from score_updater.batching.writer import TransactionalBatchWriter
from score_updater.config import FailurePolicy
from score_updater.domain.models import BatchOutcome
from score_updater.errors import BatchFailedError, ConfigurationError
from score_updater.utils.logging import get_logger

log = get_logger(__name__)

FAILURE_POLICIES = ("strict", "tolerant")


def compute_num_batches(total_rows: int, batch_size: int) -> int:
    """`ceil(total_rows / batch_size)` in integer arithmetic."""
    if batch_size <= 0:
        raise ConfigurationError(f"batch_size must be positive, got {batch_size}")
    if total_rows <= 0:
        return 0
    return -(-total_rows // batch_size)


def plan_waves(num_batches: int, max_concurrency: int) -> List[List[int]]:
    """
    Split `range(num_batches)` into consecutive chunks of at most `max_concurrency`.

    >>> plan_waves(5, 2)
    [[0, 1], [2, 3], [4]]
    """
    if max_concurrency <= 0:
        raise ConfigurationError(f"max_concurrency must be positive, got {max_concurrency}")
    return [
        list(range(start, min(start + max_concurrency, num_batches)))
        for start in range(0, num_batches, max_concurrency)
    ]


class BatchScheduler:
    """
    Run build + write for every batch of a table of `total_rows` rows.

    Under the `strict` policy the run stops after the first wave that contains
    a failed batch and raises `BatchFailedError`; batches already committed stay
    committed. Under `tolerant` every wave is attempted and failures are only
    reported through the returned outcomes.
    """

    def __init__(
        self,
        builder: BatchBuilder,
        writer: TransactionalBatchWriter,
        max_concurrency: int = 8,
        failure_policy: FailurePolicy = "strict",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_concurrency <= 0:
            raise ConfigurationError(f"max_concurrency must be positive, got {max_concurrency}")
        if failure_policy not in FAILURE_POLICIES:
            raise ConfigurationError(
                f"Unknown failure policy '{failure_policy}'. Available: {', '.join(FAILURE_POLICIES)}"
            )
        self.builder = builder
        self.writer = writer
        self.max_concurrency = max_concurrency
        self.failure_policy = failure_policy
        self._log = logger or log

    @property
    def batch_size(self) -> int:
        return self.builder.batch_size

    def num_batches(self, total_rows: int) -> int:
        return compute_num_batches(total_rows, self.batch_size)

    def _process_batch(self, batch_index: int) -> BatchOutcome:
        offset = self.builder.offset_for(batch_index)
        try:
            payload = self.builder.build(batch_index)
            written = self.writer.write(payload)
        except Exception as exc:  # noqa: BLE001 - batch boundary; recorded and surfaced as an outcome
            self._log.exception(
                f"[BATCH FAILED] #{batch_index}",
                extra={"batch_index": batch_index, "offset": offset},
            )
            return BatchOutcome(
                batch_index=batch_index,
                offset=offset,
                error=str(exc),
                error_type=type(exc).__name__,
            )
        return BatchOutcome(batch_index=batch_index, offset=offset, rows=written)

    def run(self, total_rows: int) -> List[BatchOutcome]:
        """
        Process every batch and return one outcome per attempted batch, ordered
        by batch index.

        Raises
        ------
        BatchFailedError
            Strict policy only, after the failing wave has drained.
        """
        num_batches = self.num_batches(total_rows)
        if num_batches == 0:
            self._log.info("[SCHEDULER] Table is empty; nothing to update")
            return []

        waves = plan_waves(num_batches, self.max_concurrency)
        outcomes: List[BatchOutcome] = []
        with ThreadPoolExecutor(
            max_workers=self.max_concurrency, thread_name_prefix="batch"
        ) as pool:
            for wave_number, wave in enumerate(waves, start=1):
                self._log.debug(
                    f"[WAVE {wave_number}/{len(waves)}] Starting batches {wave[0]}..{wave[-1]}",
                    extra={"wave": wave_number, "total_waves": len(waves), "batches": len(wave)},
                )
                futures = [pool.submit(self._process_batch, index) for index in wave]
                wait(futures)
                wave_outcomes = [future.result() for future in futures]
                outcomes.extend(wave_outcomes)

                failed = [o for o in wave_outcomes if not o.ok]
                self._log.debug(
                    f"[WAVE {wave_number}/{len(waves)}] Completed",
                    extra={
                        "wave": wave_number,
                        "rows": sum(o.rows for o in wave_outcomes),
                        "failed": len(failed),
                    },
                )
                if failed and self.failure_policy == "strict":
                    raise BatchFailedError(outcomes)
                if failed:
                    self._log.warning(
                        f"[WAVE {wave_number}/{len(waves)}] {len(failed)} batch(es) failed; continuing",
                        extra={"failed_batches": [o.batch_index for o in failed]},
                    )

        return outcomes


__all__ = ["BatchScheduler", "FAILURE_POLICIES", "compute_num_batches", "plan_waves"]
