"""Page-level helpers shared by the immediate and bulk stage services."""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Sequence, Tuple

from lotflow.application.ports import InferenceItem, ObjectStore
from lotflow.application.services.results import PageResult
from lotflow.constants import PAGE_IMAGE_MIME
from lotflow.domain.entities.page_document import (
    ClassificationVerdict,
    ExtractionPayload,
    PageDocument,
)
from lotflow.domain.exceptions import InvalidStatusTransitionError, RepositoryError
from lotflow.domain.repositories.page_repository import PageRepository
from lotflow.domain.services.model_router import ModelRouter
from lotflow.domain.value_objects.page_status import PageStatus
from lotflow.domain.value_objects.stage import Stage
from lotflow.infrastructure.inference.response_parser import ParsedClassification

logger = logging.getLogger(__name__)


class PageStageSupport:
    """Reads eligible pages, loads their images and writes outcomes one page at a time.

    A failed write only affects its own page. A page that already moved on
    (``InvalidStatusTransitionError``) is reported as unsuccessful but left
    untouched, since another delivery of the same job got there first.
    """

    def __init__(
        self,
        page_repository: PageRepository,
        object_store: ObjectStore,
        router: ModelRouter,
    ) -> None:
        self._pages = page_repository
        self._objects = object_store
        self._router = router

    def eligible_pages(self, page_ids: Sequence[str], stage: Stage) -> List[PageDocument]:
        pages = self._pages.get_pages_by_ids(page_ids)
        eligible = [page for page in pages if page.status is stage.eligible_status]
        skipped = len(page_ids) - len(eligible)
        if skipped:
            logger.debug("Skipping %d page(s) no longer eligible for %s", skipped, stage.value)
        return eligible

    def load_items(self, pages: Sequence[PageDocument]) -> Tuple[List[InferenceItem], List[PageResult]]:
        items: List[InferenceItem] = []
        failures: List[PageResult] = []
        for page in pages:
            try:
                image = self._objects.get_page_image_bytes(page.page_id)
            except RepositoryError as exc:
                failures.append(self.fail_page(page.page_id, f"Failed to load page image: {exc}"))
                continue
            items.append(InferenceItem(item_id=page.page_id, image_bytes=image, mime_type=PAGE_IMAGE_MIME))
        return items, failures

    def group_by_model(self, pages: Sequence[PageDocument]) -> Tuple[Dict[str, List[PageDocument]], List[PageResult]]:
        """Group classified pages by routed model; pages without one are failed."""
        groups: Dict[str, List[PageDocument]] = {}
        failures: List[PageResult] = []
        for page in pages:
            if not page.routed_model:
                failures.append(self.fail_page(page.page_id, "Page has no routed model"))
                continue
            groups.setdefault(page.routed_model, []).append(page)
        return groups, failures

    def apply_classification(self, page_id: str, parsed: ParsedClassification) -> PageResult:
        verdict = ClassificationVerdict(
            category=parsed.category,
            confidence=parsed.confidence,
            routed_model=self._router.route(parsed.category),
        )
        return self._write(page_id, lambda: self._pages.update_page_classification(page_id, verdict))

    def apply_extraction(self, page_id: str, payload: ExtractionPayload) -> PageResult:
        return self._write(page_id, lambda: self._pages.update_page_extraction(page_id, payload))

    def fail_page(self, page_id: str, message: str) -> PageResult:
        try:
            self._pages.update_page_status(page_id, PageStatus.FAILED, message)
        except InvalidStatusTransitionError:
            logger.debug("Page %s already settled; not marking failed", page_id)
        except RepositoryError as exc:
            logger.error("Could not mark page %s failed: %s", page_id, exc)
        return PageResult(page_id=page_id, success=False, error=message)

    def fail_pages(self, page_ids: Sequence[str], message: str) -> List[PageResult]:
        return [self.fail_page(page_id, message) for page_id in page_ids]

    def _write(self, page_id: str, operation: Callable[[], PageDocument]) -> PageResult:
        try:
            operation()
        except InvalidStatusTransitionError as exc:
            logger.warning("Page %s was already updated: %s", page_id, exc)
            return PageResult(page_id=page_id, success=False, error=str(exc))
        except RepositoryError as exc:
            logger.error("Failed to store result for page %s: %s", page_id, exc)
            return self.fail_page(page_id, f"Failed to store result: {exc}")
        return PageResult(page_id=page_id, success=True)
