"""Puts pipeline work on the job queues."""
from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from lotflow.application.jobs import BatchPollJob, BatchSubmitJob, ClassificationJob, ExtractionJob
from lotflow.application.ports import JobQueue
from lotflow.constants import BATCH_QUEUE, CLASSIFICATION_QUEUE, EXTRACTION_QUEUE
from lotflow.domain.value_objects.stage import Stage

logger = logging.getLogger(__name__)


def chunked(items: Sequence[str], size: int) -> List[Tuple[str, ...]]:
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    return [tuple(items[start:start + size]) for start in range(0, len(items), size)]


class JobDispatcher:
    def __init__(self, queue: JobQueue, *, sub_batch_size: int = 25) -> None:
        self._queue = queue
        self._sub_batch_size = sub_batch_size

    def enqueue_classification(self, lot_id: str, page_ids: Sequence[str]) -> int:
        """Queue immediate classification jobs; returns the number of jobs."""
        chunks = chunked(list(page_ids), self._sub_batch_size)
        for chunk in chunks:
            self._queue.enqueue(CLASSIFICATION_QUEUE, "classify", ClassificationJob(lot_id, chunk))
        logger.info(
            "Queued %d classification job(s) for %d page(s)",
            len(chunks),
            len(page_ids),
            extra={"lot_id": lot_id, "stage": Stage.CLASSIFICATION.value},
        )
        return len(chunks)

    def enqueue_extraction(self, lot_id: str, page_ids: Sequence[str]) -> int:
        chunks = chunked(list(page_ids), self._sub_batch_size)
        for chunk in chunks:
            self._queue.enqueue(EXTRACTION_QUEUE, "extract", ExtractionJob(lot_id, chunk))
        logger.info(
            "Queued %d extraction job(s) for %d page(s)",
            len(chunks),
            len(page_ids),
            extra={"lot_id": lot_id, "stage": Stage.EXTRACTION.value},
        )
        return len(chunks)

    def enqueue_batch_submit(self, lot_id: str, stage: Stage) -> None:
        self._queue.enqueue(BATCH_QUEUE, "batch-submit", BatchSubmitJob(lot_id, stage))
        logger.info("Queued bulk submission", extra={"lot_id": lot_id, "stage": stage.value})

    def enqueue_batch_poll(self, job: BatchPollJob, delay_seconds: float) -> None:
        self._queue.enqueue(BATCH_QUEUE, "batch-poll", job, delay_seconds=delay_seconds)
