"""Parse model output for a chunk of pages into per-page results.

A chunk either parses completely or not at all: any defect raises
:class:`ModelResponseError` and the caller fails every page of the chunk.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from lotflow.domain.entities.page_document import ExtractionPayload
from lotflow.domain.value_objects.classification import PageCategory

from .errors import ModelResponseError

logger = logging.getLogger(__name__)

ID_KEY = "documentId"


@dataclass(frozen=True)
class ParsedClassification:
    category: PageCategory
    confidence: float


class PageResponseParser:
    """Validates JSON array responses and keys them by page id."""

    def parse_classifications(
        self,
        content: str | None,
        page_ids: Sequence[str],
    ) -> Dict[str, ParsedClassification]:
        objects = self._match_ids(self._load_array(content, len(page_ids)), page_ids)
        results: Dict[str, ParsedClassification] = {}
        for page_id, item in objects.items():
            try:
                category = PageCategory.parse(item.get("classification"))
            except ValueError as exc:
                raise ModelResponseError(f"Page {page_id}: {exc}") from exc
            results[page_id] = ParsedClassification(
                category=category,
                confidence=_confidence(item.get("confidence"), f"Page {page_id} confidence"),
            )
        return results

    def parse_extractions(
        self,
        content: str | None,
        page_ids: Sequence[str],
    ) -> Dict[str, ExtractionPayload]:
        objects = self._match_ids(self._load_array(content, len(page_ids)), page_ids)
        results: Dict[str, ExtractionPayload] = {}
        for page_id, item in objects.items():
            fields = item.get("fields")
            if not isinstance(fields, dict):
                raise ModelResponseError(f"Page {page_id}: 'fields' must be an object")
            tables = item.get("tables")
            if tables is None:
                tables = []
            if not isinstance(tables, list):
                raise ModelResponseError(f"Page {page_id}: 'tables' must be an array")
            metadata = item.get("metadata")
            if metadata is None:
                metadata = {}
            if not isinstance(metadata, dict):
                raise ModelResponseError(f"Page {page_id}: 'metadata' must be an object")

            results[page_id] = ExtractionPayload(
                data={"fields": fields, "tables": tables, "metadata": metadata},
                confidence=_confidence(item.get("confidence"), f"Page {page_id} confidence"),
                field_confidences=_field_confidences(page_id, item.get("field_confidences")),
            )
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _load_array(content: str | None, expected: int) -> List[Dict[str, Any]]:
        text = _strip_code_fence(content or "")
        if not text:
            raise ModelResponseError("Empty response from model")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ModelResponseError(f"Response is not valid JSON: {exc.msg}") from exc

        if not isinstance(payload, list):
            raise ModelResponseError("Response must be a JSON array")
        if len(payload) != expected:
            raise ModelResponseError(f"Expected {expected} results, got {len(payload)}")
        for index, item in enumerate(payload):
            if not isinstance(item, dict):
                raise ModelResponseError(f"Result {index} is not an object")
        return payload

    @staticmethod
    def _match_ids(objects: List[Dict[str, Any]], page_ids: Sequence[str]) -> Dict[str, Dict[str, Any]]:
        returned = [item.get(ID_KEY) for item in objects]
        labelled = [value for value in returned if value not in (None, "")]

        if not labelled:
            logger.warning("Model omitted %s for %d result(s); matching by position", ID_KEY, len(objects))
            return dict(zip(page_ids, objects))
        if len(labelled) != len(objects):
            raise ModelResponseError(f"Only some results carry {ID_KEY}")

        by_id: Dict[str, Dict[str, Any]] = {}
        expected = set(page_ids)
        for value, item in zip(returned, objects):
            key = str(value)
            if key not in expected:
                raise ModelResponseError(f"Unknown {ID_KEY} {key!r}")
            if key in by_id:
                raise ModelResponseError(f"Duplicate {ID_KEY} {key!r}")
            by_id[key] = item
        return by_id


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```") and text.endswith("```") and len(text) >= 6:
        lines = text.splitlines()
        body = lines[1:-1] if len(lines) > 1 else [text.strip("`")]
        return "\n".join(body).strip()
    return text


def _confidence(value: Any, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ModelResponseError(f"{label} must be a number, got {value!r}")
    if not 0.0 <= float(value) <= 1.0:
        raise ModelResponseError(f"{label} {value} is outside [0, 1]")
    return float(value)


def _field_confidences(page_id: str, value: Any) -> Dict[str, float]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ModelResponseError(f"Page {page_id}: 'field_confidences' must be an object")
    return {
        str(name): _confidence(score, f"Page {page_id} field confidence {name!r}")
        for name, score in value.items()
    }
