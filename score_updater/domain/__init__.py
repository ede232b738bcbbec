"""
Domain package for the score updater.

Exports the row model, the writable projection used by the bulk upsert, and the
run-level result types shared by the scheduler, coordinator and reporter.
"""

from score_updater.domain.models import BatchOutcome, Record, RunReport, RunResult, ScoreUpdate

__all__ = [
    "BatchOutcome",
    "Record",
    "RunReport",
    "RunResult",
    "ScoreUpdate",
]
