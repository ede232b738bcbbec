"""
Per-row transformation: add a bounded random increment to the score and stamp
the row with the current time truncated to whole seconds.
"""

from __future__ import annotations

import random
from datetime import UTC, datetime
from typing import Callable, Optional

from score_updater.domain.models import Record, ScoreUpdate

Clock = Callable[[], datetime]


def utc_now_seconds() -> datetime:
    """Current UTC time as a naive timestamp with microseconds dropped (matches `timestamp(0)`)."""
    return datetime.now(UTC).replace(tzinfo=None, microsecond=0)


class RowTransformer:
    """
    Produce the writable projection of a record with its score bumped by an
    integer drawn uniformly from `[0, max_increment]`.

    The random source is injected so runs can be seeded. `random.Random` draws
    are safe to share across worker threads; no other state is kept.
    """

    def __init__(
        self,
        max_increment: int = 100,
        rng: Optional[random.Random] = None,
        clock: Clock = utc_now_seconds,
    ) -> None:
        if max_increment < 0:
            raise ValueError(f"max_increment must be >= 0, got {max_increment}")
        self.max_increment = max_increment
        self._rng = rng or random.Random()
        self._clock = clock

    def increment(self) -> int:
        # randint is inclusive on both ends and rejection-samples, so no modulo bias.
        return self._rng.randint(0, self.max_increment)

    def transform(self, record: Record) -> ScoreUpdate:
        return ScoreUpdate(
            id=record.id,
            score=record.score + self.increment(),
            updated_at=self._clock().replace(microsecond=0),
        )


__all__ = ["Clock", "RowTransformer", "utc_now_seconds"]
