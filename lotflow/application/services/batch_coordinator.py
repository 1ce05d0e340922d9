"""Bulk-job submission and polling for large lots."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

from lotflow.application.jobs import BatchPollJob
from lotflow.application.ports import BulkItemResponse, BulkJobState, BulkState, InferenceGateway
from lotflow.application.services.dispatcher import JobDispatcher, chunked
from lotflow.application.services.page_stage import PageStageSupport
from lotflow.application.services.pipeline_controller import PipelineController
from lotflow.application.services.results import PageResult
from lotflow.constants import POLL_TIMEOUT_STATE
from lotflow.domain.repositories.page_repository import PageRepository
from lotflow.domain.value_objects.stage import Stage
from lotflow.infrastructure.inference.errors import InferenceGatewayError, ModelResponseError
from lotflow.infrastructure.inference.prompt_builder import classification_prompt, extraction_prompt
from lotflow.infrastructure.inference.response_parser import PageResponseParser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageBatchSpec:
    prompt: Callable[[int], str]
    parse: Callable[[PageResponseParser, Optional[str], Sequence[str]], Dict[str, Any]]
    apply: Callable[[PageStageSupport, str, Any], PageResult]


STAGE_BATCH_SPECS: Dict[Stage, StageBatchSpec] = {
    Stage.CLASSIFICATION: StageBatchSpec(
        prompt=classification_prompt,
        parse=PageResponseParser.parse_classifications,
        apply=PageStageSupport.apply_classification,
    ),
    Stage.EXTRACTION: StageBatchSpec(
        prompt=extraction_prompt,
        parse=PageResponseParser.parse_extractions,
        apply=PageStageSupport.apply_extraction,
    ),
}

_missing_stages = set(Stage) - set(STAGE_BATCH_SPECS)
if _missing_stages:
    raise RuntimeError(f"No bulk handling for stage(s): {sorted(s.value for s in _missing_stages)}")


class BatchCoordinator:
    """Submits eligible pages as bulk jobs and reconciles them once they finish.

    Page ids of submitted chunks stay in an in-flight set until their poll
    reconciles, so a retried submission only sends pages that did not go out.
    """

    def __init__(
        self,
        gateway: InferenceGateway,
        page_repository: PageRepository,
        support: PageStageSupport,
        dispatcher: JobDispatcher,
        controller: PipelineController,
        *,
        classification_model: str,
        chunk_size: int = 100,
        poll_delay_seconds: float = 30.0,
        poll_max_attempts: int = 2880,
        parser: PageResponseParser | None = None,
    ) -> None:
        self._gateway = gateway
        self._pages = page_repository
        self._support = support
        self._dispatcher = dispatcher
        self._controller = controller
        self._classification_model = classification_model
        self._chunk_size = chunk_size
        self._poll_delay_seconds = poll_delay_seconds
        self._poll_max_attempts = poll_max_attempts
        self._parser = parser or PageResponseParser()
        self._in_flight: Dict[Tuple[str, Stage], Set[str]] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def submit(self, lot_id: str, stage: Stage) -> List[str]:
        """Submit one bulk job per chunk and schedule its poll; returns the job handles."""
        spec = STAGE_BATCH_SPECS[stage]
        key = (lot_id, stage)
        lot_page_ids = [page.page_id for page in self._pages.get_pages_by_lot_id(lot_id)]
        with self._lock:
            in_flight = set(self._in_flight.get(key, ()))
        pages = [
            page
            for page in self._support.eligible_pages(lot_page_ids, stage)
            if page.page_id not in in_flight
        ]

        failures: List[PageResult] = []
        if stage is Stage.CLASSIFICATION:
            groups = {self._classification_model: pages} if pages else {}
        else:
            groups, failures = self._support.group_by_model(pages)

        handles: List[str] = []
        for model, group in groups.items():
            items, load_failures = self._support.load_items(group)
            failures.extend(load_failures)
            by_id = {item.item_id: item for item in items}
            for chunk_ids in chunked(list(by_id), self._chunk_size):
                handle = self._gateway.submit_bulk_job(
                    model, [by_id[page_id] for page_id in chunk_ids], spec.prompt(1)
                )
                with self._lock:
                    self._in_flight.setdefault(key, set()).update(chunk_ids)
                self._dispatcher.enqueue_batch_poll(
                    BatchPollJob(job_handle=handle, lot_id=lot_id, stage=stage, page_ids=chunk_ids),
                    self._poll_delay_seconds,
                )
                handles.append(handle)

        logger.info(
            "Submitted %d bulk job(s) for %d page(s)",
            len(handles),
            len(pages),
            extra={"lot_id": lot_id, "stage": stage.value},
        )
        if failures or not handles:
            self._controller.check_stage_complete(lot_id, stage)
        return handles

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------
    def poll(self, job: BatchPollJob) -> Optional[List[PageResult]]:
        """Check one bulk job; returns ``None`` while it is still running."""
        log_extra = {"lot_id": job.lot_id, "stage": job.stage.value, "job_handle": job.job_handle}
        try:
            state = self._gateway.get_bulk_job_state(job.job_handle)
        except InferenceGatewayError as exc:
            logger.warning("Poll request failed: %s", exc, extra=log_extra)
            return self._poll_again(job)

        if not state.state.is_terminal:
            logger.debug("Bulk job still %s", state.raw_state, extra=log_extra)
            return self._poll_again(job)

        if state.state is BulkState.SUCCEEDED:
            results = self._reconcile_success(job, state)
        else:
            results = self.fail_chunk(job, state.raw_state)
        logger.info(
            "Reconciled bulk job (%s): %d/%d page(s) succeeded",
            state.raw_state,
            sum(1 for result in results if result.success),
            len(results),
            extra=log_extra,
        )
        self._finish_chunk(job)
        return results

    def fail_chunk(self, job: BatchPollJob, state: str) -> List[PageResult]:
        """Fail every still-eligible page of ``job`` with a message naming ``state``."""
        eligible = self._support.eligible_pages(job.page_ids, job.stage)
        message = f"Bulk job {job.job_handle} ended in state {state}"
        return self._support.fail_pages([page.page_id for page in eligible], message)

    def abandon(self, job: BatchPollJob, reason: str) -> List[PageResult]:
        """Stop tracking ``job``, fail its unsettled pages and re-run the stage check."""
        results = self.fail_chunk(job, reason)
        self._finish_chunk(job)
        return results

    def abandon_submission(self, lot_id: str, stage: Stage, reason: str) -> List[PageResult]:
        """Fail eligible pages of the lot that never made it into a bulk job."""
        in_flight = self.in_flight_page_ids(lot_id, stage)
        lot_page_ids = [page.page_id for page in self._pages.get_pages_by_lot_id(lot_id)]
        stranded = [
            page.page_id
            for page in self._support.eligible_pages(lot_page_ids, stage)
            if page.page_id not in in_flight
        ]
        results = self._support.fail_pages(stranded, f"Bulk submission failed: {reason}")
        self._controller.check_stage_complete(lot_id, stage)
        return results

    def release(self, lot_id: str, stage: Stage, page_ids: Sequence[str]) -> None:
        key = (lot_id, stage)
        with self._lock:
            remaining = self._in_flight.get(key)
            if remaining is None:
                return
            remaining.difference_update(page_ids)
            if not remaining:
                del self._in_flight[key]

    def in_flight_page_ids(self, lot_id: str, stage: Stage) -> Set[str]:
        with self._lock:
            return set(self._in_flight.get((lot_id, stage), ()))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _poll_again(self, job: BatchPollJob) -> Optional[List[PageResult]]:
        next_job = job.next_poll()
        if next_job.poll_count >= self._poll_max_attempts:
            logger.error(
                "Giving up on bulk job after %d polls",
                next_job.poll_count,
                extra={"lot_id": job.lot_id, "stage": job.stage.value, "job_handle": job.job_handle},
            )
            return self.abandon(job, POLL_TIMEOUT_STATE)
        self._dispatcher.enqueue_batch_poll(next_job, self._poll_delay_seconds)
        return None

    def _finish_chunk(self, job: BatchPollJob) -> None:
        self.release(job.lot_id, job.stage, job.page_ids)
        self._controller.check_stage_complete(job.lot_id, job.stage)

    def _reconcile_success(self, job: BatchPollJob, state: BulkJobState) -> List[PageResult]:
        spec = STAGE_BATCH_SPECS[job.stage]
        responses = self._match_responses(job, state.responses)
        results: List[PageResult] = []

        for page in self._support.eligible_pages(job.page_ids, job.stage):
            page_id = page.page_id
            response = responses.get(page_id)
            if response is None:
                results.append(self._support.fail_page(page_id, f"No result for page in bulk job {job.job_handle}"))
                continue
            if response.error:
                results.append(self._support.fail_page(page_id, f"Bulk item failed: {response.error}"))
                continue
            try:
                parsed = spec.parse(self._parser, response.text, [page_id])
            except ModelResponseError as exc:
                results.append(self._support.fail_page(page_id, f"Bulk response rejected: {exc}"))
                continue
            results.append(spec.apply(self._support, page_id, parsed[page_id]))
        return results

    @staticmethod
    def _match_responses(
        job: BatchPollJob,
        responses: Sequence[BulkItemResponse],
    ) -> Dict[str, BulkItemResponse]:
        expected = set(job.page_ids)
        by_id: Dict[str, BulkItemResponse] = {}
        unlabelled: List[BulkItemResponse] = []
        for response in responses:
            if response.item_id is None:
                unlabelled.append(response)
            elif response.item_id not in expected:
                logger.warning("Ignoring result for unknown item %s", response.item_id, extra={"job_handle": job.job_handle})
            elif response.item_id in by_id:
                logger.warning("Ignoring duplicate result for %s", response.item_id, extra={"job_handle": job.job_handle})
            else:
                by_id[response.item_id] = response

        if unlabelled:
            missing = [page_id for page_id in job.page_ids if page_id not in by_id]
            logger.warning(
                "%d result(s) without an item id; matching by position",
                len(unlabelled),
                extra={"job_handle": job.job_handle},
            )
            by_id.update(zip(missing, unlabelled))
        return by_id
