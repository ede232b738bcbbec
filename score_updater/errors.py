"""
Exception hierarchy for the score updater.

Batch-level failures are recorded as outcomes by the scheduler; these exceptions
are what reaches the caller when a run cannot be reported as a normal result.
"""

from __future__ import annotations

from typing import Sequence

from score_updater.domain.models import BatchOutcome


class ScoreUpdateError(Exception):
    """Base class for errors raised by the score updater."""


class ConfigurationError(ScoreUpdateError):
    """Raised when job parameters are inconsistent (e.g. a non-positive batch size)."""


class BatchFailedError(ScoreUpdateError):
    """
    Raised under the strict failure policy once a wave containing a failed batch
    has fully drained.

    Attributes
    ----------
    outcomes : tuple[BatchOutcome, ...]
        Every outcome recorded before the run stopped, successes included.
        `failed` and `completed` split them by result.
    """

    def __init__(self, outcomes: Sequence[BatchOutcome]) -> None:
        self.outcomes = tuple(outcomes)
        failed = [o.batch_index for o in self.outcomes if not o.ok]
        super().__init__(
            f"{len(failed)} batch(es) failed: {failed}; "
            f"{len(self.outcomes) - len(failed)} committed before the run stopped"
        )

    @property
    def failed(self) -> tuple[BatchOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.ok)

    @property
    def completed(self) -> tuple[BatchOutcome, ...]:
        return tuple(o for o in self.outcomes if o.ok)


__all__ = ["ScoreUpdateError", "ConfigurationError", "BatchFailedError"]
