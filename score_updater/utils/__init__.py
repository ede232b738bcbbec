"""
Utilities package for the score updater.

Exports shared helpers for logging and profiling. Keep this package free of
domain-specific logic.
"""

from score_updater.utils.logging import configure_logging, get_logger
from score_updater.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
