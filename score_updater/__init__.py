"""
Score Updater - concurrent, batched mutation of every row in the `users` table.

Each run adds a bounded random increment to every user's score and refreshes
`updated_at`, working through the table in fixed-size pages:

- Pages are processed as batches, each in its own transaction
- Batches run in bounded-concurrency waves; rows within a batch are
  transformed on a small thread pool
- The run reports `(total_rows, num_batches, elapsed_seconds)`
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from score_updater.config import Settings, get_settings
from score_updater.domain.models import BatchOutcome, Record, RunReport, RunResult, ScoreUpdate
from score_updater.errors import BatchFailedError, ConfigurationError, ScoreUpdateError
from score_updater.infrastructure.record_store import PostgresRecordStore, RecordStore
from score_updater.updater import ScoreUpdater, persist_report, update_all_scores
from score_updater.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Entry points
    "ScoreUpdater",
    "update_all_scores",
    "persist_report",
    # Domain
    "BatchOutcome",
    "Record",
    "RunReport",
    "RunResult",
    "ScoreUpdate",
    # Storage
    "PostgresRecordStore",
    "RecordStore",
    # Errors
    "BatchFailedError",
    "ConfigurationError",
    "ScoreUpdateError",
    # Logging
    "configure_logging",
    "get_logger",
]
