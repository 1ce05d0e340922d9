"""Immediate classification of a sub-batch of pages."""
from __future__ import annotations

import logging
from typing import List, Sequence

from lotflow.application.ports import InferenceGateway, InferenceItem
from lotflow.application.services.page_stage import PageStageSupport
from lotflow.application.services.results import PageResult
from lotflow.domain.value_objects.stage import Stage
from lotflow.infrastructure.inference.errors import ModelResponseError
from lotflow.infrastructure.inference.prompt_builder import classification_prompt
from lotflow.infrastructure.inference.response_parser import PageResponseParser

logger = logging.getLogger(__name__)


class PageClassifier:
    """Classifies pages in requests of ``request_size`` images.

    Gateway errors propagate so the queue retries the job; a malformed answer
    fails every page of its request.
    """

    def __init__(
        self,
        gateway: InferenceGateway,
        support: PageStageSupport,
        *,
        model: str,
        request_size: int = 10,
        parser: PageResponseParser | None = None,
    ) -> None:
        self._gateway = gateway
        self._support = support
        self._model = model
        self._request_size = request_size
        self._parser = parser or PageResponseParser()

    def classify(self, lot_id: str, page_ids: Sequence[str]) -> List[PageResult]:
        pages = self._support.eligible_pages(page_ids, Stage.CLASSIFICATION)
        items, results = self._support.load_items(pages)
        for start in range(0, len(items), self._request_size):
            results.extend(self._classify_chunk(items[start:start + self._request_size]))

        succeeded = sum(1 for result in results if result.success)
        logger.info(
            "Classified %d/%d page(s)",
            succeeded,
            len(results),
            extra={"lot_id": lot_id, "stage": Stage.CLASSIFICATION.value},
        )
        return results

    def _classify_chunk(self, chunk: List[InferenceItem]) -> List[PageResult]:
        page_ids = [item.item_id for item in chunk]
        content = self._gateway.generate(self._model, chunk, classification_prompt(len(chunk)))
        try:
            parsed = self._parser.parse_classifications(content, page_ids)
        except ModelResponseError as exc:
            logger.warning("Discarding classification response for %d page(s): %s", len(page_ids), exc)
            return self._support.fail_pages(page_ids, f"Classification response rejected: {exc}")

        return [self._support.apply_classification(page_id, parsed[page_id]) for page_id in page_ids]
