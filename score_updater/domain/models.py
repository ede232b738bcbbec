"""
Domain models for the score updater.

`Record` mirrors a row of the `users` table as read by the job; `ScoreUpdate` is
the writable projection handed to the bulk upsert (only the fields the write
touches). Run-level results live here too so every layer shares one vocabulary.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from pydantic import BaseModel, Field

from score_updater.utils.profiler import ProfileStats


class Record(BaseModel):
    """
    Representation of a single row in the `users` table.
    """

    id: int = Field(..., description="Primary key and upsert conflict target.")
    score: int = Field(..., description="Score mutated by the update job.")
    inserted_at: datetime = Field(..., description="Row creation timestamp.")
    updated_at: datetime = Field(..., description="Last modification timestamp.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }


class ScoreUpdate(BaseModel):
    """
    Writable projection of a `Record`: exactly the columns the upsert accepts.
    """

    id: int
    score: int
    updated_at: datetime

    model_config = {"frozen": True}

    def as_params(self) -> Tuple[int, int, datetime, datetime]:
        """Positional parameters for the upsert statement (id, score, inserted_at, updated_at)."""
        return (self.id, self.score, self.updated_at, self.updated_at)


class RunResult(NamedTuple):
    """Aggregate result of one run: `(total_rows, num_batches, elapsed_seconds)`."""

    total_rows: int
    num_batches: int
    elapsed_seconds: int


@dataclass(frozen=True)
class BatchOutcome:
    batch_index: int
    offset: int
    rows: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_type is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_index": self.batch_index,
            "offset": self.offset,
            "rows": self.rows,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class RunReport:
    """
    Full account of one run. `result` is what `update_all_scores` returns; the
    outcomes let callers detect degraded (tolerant-mode) runs.
    """

    result: RunResult
    started_at: datetime
    finished_at: datetime
    failure_policy: str = "strict"
    outcomes: List[BatchOutcome] = field(default_factory=list)
    profile: Optional[ProfileStats] = None

    @property
    def failed_batches(self) -> List[BatchOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def rows_written(self) -> int:
        return sum(o.rows for o in self.outcomes if o.ok)

    @property
    def degraded(self) -> bool:
        return bool(self.failed_batches)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "total_rows": self.result.total_rows,
            "num_batches": self.result.num_batches,
            "elapsed_seconds": self.result.elapsed_seconds,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "failure_policy": self.failure_policy,
            "rows_written": self.rows_written,
            "failed_batches": [o.to_dict() for o in self.failed_batches],
        }
        if self.profile is not None:
            payload["profile"] = {
                "label": self.profile.label,
                "duration_seconds": round(self.profile.duration_seconds, 2),
                "peak_rss_bytes": self.profile.peak_rss_bytes,
                "cpu_percent": (
                    round(self.profile.cpu_percent, 1)
                    if self.profile.cpu_percent is not None
                    else None
                ),
            }
        return payload


__all__ = ["Record", "ScoreUpdate", "RunResult", "BatchOutcome", "RunReport"]
