"""Queue handlers for the pipeline.

Immediate jobs run the stage-completion check as their last step, so a failed
check is retried together with the (idempotent) job. When a job runs out of
attempts its unsettled pages are failed and the check runs once more, so a
lot never waits on work that will not happen.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional

from lotflow.application.jobs import BatchPollJob, BatchSubmitJob, ClassificationJob, ExtractionJob
from lotflow.application.ports import JobQueue
from lotflow.application.services.batch_coordinator import BatchCoordinator
from lotflow.application.services.page_classifier import PageClassifier
from lotflow.application.services.page_extractor import PageExtractor
from lotflow.application.services.page_stage import PageStageSupport
from lotflow.application.services.pipeline_controller import PipelineController
from lotflow.application.services.results import PageResult
from lotflow.constants import BATCH_QUEUE, CLASSIFICATION_QUEUE, EXTRACTION_QUEUE
from lotflow.domain.value_objects.stage import Stage

logger = logging.getLogger(__name__)


class PipelineWorkers:
    def __init__(
        self,
        queue: JobQueue,
        controller: PipelineController,
        classifier: PageClassifier,
        extractor: PageExtractor,
        coordinator: BatchCoordinator,
        support: PageStageSupport,
    ) -> None:
        self._queue = queue
        self._controller = controller
        self._classifier = classifier
        self._extractor = extractor
        self._coordinator = coordinator
        self._support = support

    def register(self) -> None:
        self._queue.register(CLASSIFICATION_QUEUE, self.handle_classification)
        self._queue.register(EXTRACTION_QUEUE, self.handle_extraction)
        self._queue.register(BATCH_QUEUE, self.handle_batch)

        for queue_name in (CLASSIFICATION_QUEUE, EXTRACTION_QUEUE):
            self._queue.on_completed(queue_name, self._log_page_job)
        self._queue.on_failed(CLASSIFICATION_QUEUE, self.on_page_job_exhausted)
        self._queue.on_failed(EXTRACTION_QUEUE, self.on_page_job_exhausted)
        self._queue.on_failed(BATCH_QUEUE, self.on_batch_job_exhausted)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------
    def handle_classification(self, job: ClassificationJob) -> List[PageResult]:
        results = self._classifier.classify(job.lot_id, job.page_ids)
        self._controller.check_classification_complete(job.lot_id)
        return results

    def handle_extraction(self, job: ExtractionJob) -> List[PageResult]:
        results = self._extractor.extract(job.lot_id, job.page_ids)
        self._controller.check_extraction_complete(job.lot_id)
        return results

    def handle_batch(self, job: Any) -> Optional[Any]:
        if isinstance(job, BatchSubmitJob):
            return self._coordinator.submit(job.lot_id, job.stage)
        if isinstance(job, BatchPollJob):
            return self._coordinator.poll(job)
        raise TypeError(f"Unsupported batch payload: {type(job).__name__}")

    # ------------------------------------------------------------------
    # Retries exhausted
    # ------------------------------------------------------------------
    def on_page_job_exhausted(self, job: Any, error: BaseException) -> None:
        stage = Stage.CLASSIFICATION if isinstance(job, ClassificationJob) else Stage.EXTRACTION
        pages = self._support.eligible_pages(job.page_ids, stage)
        self._support.fail_pages(
            [page.page_id for page in pages],
            f"{stage.value.capitalize()} failed after retries: {error}",
        )
        logger.error(
            "Failed %d page(s) after retries were exhausted",
            len(pages),
            extra={"lot_id": job.lot_id, "stage": stage.value},
        )
        self._controller.check_stage_complete(job.lot_id, stage)

    def on_batch_job_exhausted(self, job: Any, error: BaseException) -> None:
        if isinstance(job, BatchSubmitJob):
            self._coordinator.abandon_submission(job.lot_id, job.stage, str(error))
        elif isinstance(job, BatchPollJob):
            self._coordinator.abandon(job, f"poll_error ({error})")
        else:
            logger.error("Dropping unsupported batch payload %r", job)

    @staticmethod
    def _log_page_job(job: Any, results: List[PageResult]) -> None:
        failed = [result.page_id for result in results or () if not result.success]
        logger.info(
            "%s finished: %d ok, %d failed",
            type(job).__name__,
            len(results or ()) - len(failed),
            len(failed),
            extra={"lot_id": getattr(job, "lot_id", None)},
        )
