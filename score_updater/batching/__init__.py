"""
Batching package: the row transformer, the batch builder, the transactional
writer and the wave scheduler that drives them.
"""

from score_updater.batching.builder import BatchBuilder
from score_updater.batching.scheduler import BatchScheduler, compute_num_batches, plan_waves
from score_updater.batching.transformer import RowTransformer, utc_now_seconds
from score_updater.batching.writer import TransactionalBatchWriter

__all__ = [
    "BatchBuilder",
    "BatchScheduler",
    "RowTransformer",
    "TransactionalBatchWriter",
    "compute_num_batches",
    "plan_waves",
    "utc_now_seconds",
]
