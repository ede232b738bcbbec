"""
Infrastructure package for the score updater.

Centralizes database connectivity (pool management, retrying connections) and
the record store gateway. Keep this layer focused on I/O and resource
management, decoupled from batching and coordination logic.
"""

from score_updater.infrastructure.db_factory import (
    PoolManager,
    build_dsn,
    get_sync_connection,
    get_sync_pool,
)
from score_updater.infrastructure.record_store import PostgresRecordStore, RecordStore

__all__ = [
    "PoolManager",
    "PostgresRecordStore",
    "RecordStore",
    "build_dsn",
    "get_sync_connection",
    "get_sync_pool",
]
