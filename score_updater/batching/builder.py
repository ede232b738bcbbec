"""
Batch builder: read one page of the table and transform its rows.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from score_updater.batching.transformer import RowTransformer
from score_updater.domain.models import ScoreUpdate
from score_updater.infrastructure.record_store import RecordStore
from score_updater.utils.logging import get_logger

log = get_logger(__name__)


class BatchBuilder:
    """
    Turn a batch index into the payload for its upsert.

    Batch `b` covers the page at offset `b * batch_size`. Rows are transformed
    on a small thread pool capped at `transform_concurrency`; the payload order
    is not meaningful to the write.
    """

    def __init__(
        self,
        store: RecordStore,
        transformer: RowTransformer,
        batch_size: int = 500,
        transform_concurrency: int = 4,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if transform_concurrency <= 0:
            raise ValueError(f"transform_concurrency must be positive, got {transform_concurrency}")
        self.store = store
        self.transformer = transformer
        self.batch_size = batch_size
        self.transform_concurrency = transform_concurrency
        self._log = logger or log

    def offset_for(self, batch_index: int) -> int:
        return batch_index * self.batch_size

    def build(self, batch_index: int) -> List[ScoreUpdate]:
        offset = self.offset_for(batch_index)
        page = self.store.fetch_page(offset, self.batch_size)
        with ThreadPoolExecutor(
            max_workers=self.transform_concurrency,
            thread_name_prefix=f"batch-{batch_index}-row",
        ) as pool:
            payload = list(pool.map(self.transformer.transform, page))

        self._log.debug(
            f"[BATCH BUILT] #{batch_index}",
            extra={"batch_index": batch_index, "offset": offset, "rows": len(payload)},
        )
        return payload


__all__ = ["BatchBuilder"]
