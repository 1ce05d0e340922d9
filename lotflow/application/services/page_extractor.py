"""Immediate extraction of a sub-batch of classified pages."""
from __future__ import annotations

import logging
from typing import List, Sequence

from lotflow.application.ports import InferenceGateway, InferenceItem
from lotflow.application.services.page_stage import PageStageSupport
from lotflow.application.services.results import PageResult
from lotflow.domain.value_objects.stage import Stage
from lotflow.infrastructure.inference.errors import ModelResponseError
from lotflow.infrastructure.inference.prompt_builder import extraction_prompt
from lotflow.infrastructure.inference.response_parser import PageResponseParser

logger = logging.getLogger(__name__)


class PageExtractor:
    """Extracts pages with the model each page was routed to."""

    def __init__(
        self,
        gateway: InferenceGateway,
        support: PageStageSupport,
        *,
        request_size: int = 5,
        parser: PageResponseParser | None = None,
    ) -> None:
        self._gateway = gateway
        self._support = support
        self._request_size = request_size
        self._parser = parser or PageResponseParser()

    def extract(self, lot_id: str, page_ids: Sequence[str]) -> List[PageResult]:
        pages = self._support.eligible_pages(page_ids, Stage.EXTRACTION)
        groups, results = self._support.group_by_model(pages)

        for model, group in groups.items():
            items, failures = self._support.load_items(group)
            results.extend(failures)
            for start in range(0, len(items), self._request_size):
                results.extend(self._extract_chunk(model, items[start:start + self._request_size]))

        succeeded = sum(1 for result in results if result.success)
        logger.info(
            "Extracted %d/%d page(s) across %d model(s)",
            succeeded,
            len(results),
            len(groups),
            extra={"lot_id": lot_id, "stage": Stage.EXTRACTION.value},
        )
        return results

    def _extract_chunk(self, model: str, chunk: List[InferenceItem]) -> List[PageResult]:
        page_ids = [item.item_id for item in chunk]
        content = self._gateway.generate(model, chunk, extraction_prompt(len(chunk)))
        try:
            parsed = self._parser.parse_extractions(content, page_ids)
        except ModelResponseError as exc:
            logger.warning("Discarding extraction response for %d page(s) from %s: %s", len(page_ids), model, exc)
            return self._support.fail_pages(page_ids, f"Extraction response rejected: {exc}")

        return [self._support.apply_extraction(page_id, parsed[page_id]) for page_id in page_ids]
