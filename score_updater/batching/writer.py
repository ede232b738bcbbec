"""
Transactional batch writer: one transaction per batch, all-or-nothing.
"""

from __future__ import annotations

from typing import Sequence

from score_updater.domain.models import ScoreUpdate
from score_updater.infrastructure.record_store import RecordStore


class TransactionalBatchWriter:
    """
    Upsert a batch payload inside its own transaction.

    Any exception raised by the store rolls the transaction back and propagates
    unchanged; the writer does not retry.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def write(self, payload: Sequence[ScoreUpdate]) -> int:
        if not payload:
            return 0
        with self.store.transaction() as scope:
            return self.store.upsert_batch(payload, scope)


__all__ = ["TransactionalBatchWriter"]
