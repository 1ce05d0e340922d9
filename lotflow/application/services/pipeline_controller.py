"""
Lot state machine driver.

Every stage check runs under a per-lot lock, re-reads the lot and its page
counts, and acts only while the lot is still in the stage the check belongs
to. Work is dispatched before the status write; the write itself is a
compare-and-set, so a repeated check with no new page updates is a no-op.
"""
from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Dict, List, Sequence

from lotflow.application.services.dispatcher import JobDispatcher
from lotflow.domain.repositories.lot_repository import LotRepository
from lotflow.domain.repositories.page_repository import PageRepository
from lotflow.domain.services.stage_policy import classification_outcome, extraction_outcome
from lotflow.domain.value_objects.lot_status import LotStatus
from lotflow.domain.value_objects.page_status import PageStatus
from lotflow.domain.value_objects.stage import Stage

logger = logging.getLogger(__name__)


class StageDecision(str, Enum):
    NONE = "none"
    DISPATCHED_EXTRACTION = "dispatched_extraction"
    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"


_TERMINAL_DECISIONS: Dict[LotStatus, StageDecision] = {
    LotStatus.COMPLETED: StageDecision.COMPLETED,
    LotStatus.PARTIAL_FAILURE: StageDecision.PARTIAL_FAILURE,
    LotStatus.FAILED: StageDecision.FAILED,
}


class PipelineController:
    def __init__(
        self,
        lot_repository: LotRepository,
        page_repository: PageRepository,
        dispatcher: JobDispatcher,
        *,
        batch_api_threshold: int = 40,
    ) -> None:
        self._lots = lot_repository
        self._pages = page_repository
        self._dispatcher = dispatcher
        self._batch_api_threshold = batch_api_threshold
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._stage_checks: Dict[Stage, Callable[[str], StageDecision]] = {
            Stage.CLASSIFICATION: self.check_classification_complete,
            Stage.EXTRACTION: self.check_extraction_complete,
        }
        missing = set(Stage) - set(self._stage_checks)
        if missing:
            raise RuntimeError(f"No completion check for stage(s): {sorted(s.value for s in missing)}")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def start_lot(self, lot_id: str) -> LotStatus:
        """Dispatch classification for a freshly uploaded lot and return its new status."""
        with self._lot_lock(lot_id):
            lot = self._lots.get_lot_by_id(lot_id)
            if lot.status is not LotStatus.UPLOADING:
                logger.info("Lot %s already started (%s)", lot_id, lot.status.value, extra={"lot_id": lot_id})
                return lot.status

            pages = self._pages.get_pages_by_lot_id(lot_id)
            pending_ids = [page.page_id for page in pages if page.status is PageStatus.PENDING]
            if not pending_ids:
                logger.warning("Lot %s has no pages to process", lot_id, extra={"lot_id": lot_id})
                self._finish(lot_id, LotStatus.UPLOADING, LotStatus.FAILED)
                return LotStatus.FAILED

            self._dispatch(lot_id, Stage.CLASSIFICATION, pending_ids)
            self._lots.transition_status(lot_id, LotStatus.UPLOADING, LotStatus.CLASSIFYING)
            return LotStatus.CLASSIFYING

    def check_stage_complete(self, lot_id: str, stage: Stage) -> StageDecision:
        return self._stage_checks[stage](lot_id)

    def check_classification_complete(self, lot_id: str) -> StageDecision:
        with self._lot_lock(lot_id):
            lot = self._lots.get_lot_by_id(lot_id)
            if lot.status is not LotStatus.CLASSIFYING:
                return StageDecision.NONE

            counts = self._pages.get_page_counts_by_status(lot_id)
            outcome = classification_outcome(counts)
            if outcome is None:
                return StageDecision.NONE

            if outcome is LotStatus.EXTRACTING:
                classified_ids = [
                    page.page_id
                    for page in self._pages.get_pages_by_lot_id(lot_id)
                    if page.status is PageStatus.CLASSIFIED
                ]
                self._dispatch(lot_id, Stage.EXTRACTION, classified_ids)
                self._lots.transition_status(lot_id, LotStatus.CLASSIFYING, LotStatus.EXTRACTING)
                logger.info(
                    "Classification settled (%d classified, %d failed)",
                    counts.classified,
                    counts.failed,
                    extra={"lot_id": lot_id, "stage": Stage.CLASSIFICATION.value},
                )
                return StageDecision.DISPATCHED_EXTRACTION

            return self._finish(lot_id, LotStatus.CLASSIFYING, outcome)

    def check_extraction_complete(self, lot_id: str) -> StageDecision:
        with self._lot_lock(lot_id):
            lot = self._lots.get_lot_by_id(lot_id)
            if lot.status is not LotStatus.EXTRACTING:
                return StageDecision.NONE

            outcome = extraction_outcome(self._pages.get_page_counts_by_status(lot_id))
            if outcome is None:
                return StageDecision.NONE
            return self._finish(lot_id, LotStatus.EXTRACTING, outcome)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _lot_lock(self, lot_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(lot_id)
            if lock is None:
                lock = self._locks[lot_id] = threading.Lock()
            return lock

    def _dispatch(self, lot_id: str, stage: Stage, page_ids: Sequence[str]) -> None:
        if len(page_ids) > self._batch_api_threshold:
            self._dispatcher.enqueue_batch_submit(lot_id, stage)
        elif stage is Stage.CLASSIFICATION:
            self._dispatcher.enqueue_classification(lot_id, page_ids)
        else:
            self._dispatcher.enqueue_extraction(lot_id, page_ids)

    def _finish(self, lot_id: str, expected: LotStatus, status: LotStatus) -> StageDecision:
        if not self._lots.transition_status(lot_id, expected, status):
            return StageDecision.NONE

        pages = self._pages.get_pages_by_lot_id(lot_id)
        processed: List[str] = [page.page_id for page in pages if page.status is PageStatus.EXTRACTED]
        failed: List[str] = [page.page_id for page in pages if page.status is PageStatus.FAILED]
        self._lots.update_lot_status(lot_id, status, processed, failed)
        # Terminal lots return early on the status read, so a later check can take a fresh lock.
        with self._locks_guard:
            self._locks.pop(lot_id, None)
        logger.info(
            "Lot finished as %s (%d processed, %d failed)",
            status.value,
            len(processed),
            len(failed),
            extra={"lot_id": lot_id},
        )
        return _TERMINAL_DECISIONS[status]
