"""
Domain Entity: PageDocument

One page of a source document; the unit of work for classification and
extraction.

Business rules:
- Page numbers are 1-indexed and unique within a source document
- Status only moves forward: pending → classified → extracted
- ``failed`` is reachable from any non-terminal status and is terminal
- A page is never extracted before it is classified, never re-classified
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from lotflow.domain.entities.lot import _parse_datetime
from lotflow.domain.exceptions import InvalidStatusTransitionError
from lotflow.domain.value_objects.classification import PageCategory
from lotflow.domain.value_objects.page_status import PageStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ClassificationVerdict:
    """Outcome of classifying one page."""

    category: PageCategory
    confidence: float
    routed_model: str

    def __post_init__(self):
        if not isinstance(self.category, PageCategory):
            object.__setattr__(self, "category", PageCategory.parse(self.category))
        if not 0.0 <= float(self.confidence) <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        object.__setattr__(self, "confidence", float(self.confidence))


@dataclass(frozen=True)
class ExtractionPayload:
    """Structured data extracted from one page."""

    data: Dict[str, Any]
    confidence: float
    field_confidences: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        if not 0.0 <= float(self.confidence) <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        object.__setattr__(self, "confidence", float(self.confidence))


@dataclass(frozen=True)
class PageDocument:
    page_id: str
    lot_id: str
    source_document_id: str
    page_number: int
    status: PageStatus = PageStatus.PENDING
    classification: Optional[PageCategory] = None
    routed_model: Optional[str] = None
    confidence: Optional[float] = None
    extracted_data: Optional[Dict[str, Any]] = None
    field_confidences: Optional[Dict[str, float]] = None
    error_message: Optional[str] = None
    storage_locator: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if self.page_number < 1:
            raise ValueError("Page number must be >= 1")
        if not isinstance(self.status, PageStatus):
            object.__setattr__(self, "status", PageStatus.from_string(self.status))
        if self.classification is not None and not isinstance(self.classification, PageCategory):
            object.__setattr__(self, "classification", PageCategory.parse(self.classification))

    # ==================== Factory Methods ====================

    @classmethod
    def create(
        cls,
        lot_id: str,
        source_document_id: str,
        page_number: int,
        *,
        storage_locator: Optional[str] = None,
        page_id: Optional[str] = None,
    ) -> "PageDocument":
        """Create a new page in ``pending`` status."""
        now = _utcnow()
        return cls(
            page_id=page_id or uuid.uuid4().hex,
            lot_id=lot_id,
            source_document_id=source_document_id,
            page_number=page_number,
            storage_locator=storage_locator,
            created_at=now,
            updated_at=now,
        )

    # ==================== Transitions ====================

    def classify(self, verdict: ClassificationVerdict) -> "PageDocument":
        self._ensure_transition(PageStatus.CLASSIFIED)
        return replace(
            self,
            status=PageStatus.CLASSIFIED,
            classification=verdict.category,
            routed_model=verdict.routed_model,
            confidence=verdict.confidence,
            error_message=None,
            updated_at=_utcnow(),
        )

    def extract(self, payload: ExtractionPayload) -> "PageDocument":
        self._ensure_transition(PageStatus.EXTRACTED)
        return replace(
            self,
            status=PageStatus.EXTRACTED,
            extracted_data=dict(payload.data),
            confidence=payload.confidence,
            field_confidences=dict(payload.field_confidences),
            updated_at=_utcnow(),
        )

    def fail(self, message: Optional[str]) -> "PageDocument":
        self._ensure_transition(PageStatus.FAILED)
        return replace(
            self,
            status=PageStatus.FAILED,
            error_message=message,
            updated_at=_utcnow(),
        )

    def _ensure_transition(self, new_status: PageStatus) -> None:
        if not self.status.can_transition_to(new_status):
            raise InvalidStatusTransitionError(
                "Page", self.page_id, self.status.value, new_status.value
            )

    # ==================== Serialization ====================

    def to_dict(self) -> dict:
        return {
            "page_id": self.page_id,
            "lot_id": self.lot_id,
            "source_document_id": self.source_document_id,
            "page_number": self.page_number,
            "status": self.status.value,
            "classification": self.classification.value if self.classification else None,
            "routed_model": self.routed_model,
            "confidence": self.confidence,
            "extracted_data": self.extracted_data,
            "field_confidences": self.field_confidences,
            "error_message": self.error_message,
            "storage_locator": self.storage_locator,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PageDocument":
        created_at = _parse_datetime(data.get("created_at"))
        return cls(
            page_id=data["page_id"],
            lot_id=data["lot_id"],
            source_document_id=data.get("source_document_id", ""),
            page_number=int(data.get("page_number") or 1),
            status=PageStatus.from_string(data.get("status", PageStatus.PENDING.value)),
            classification=data.get("classification"),
            routed_model=data.get("routed_model"),
            confidence=data.get("confidence"),
            extracted_data=data.get("extracted_data"),
            field_confidences=data.get("field_confidences"),
            error_message=data.get("error_message"),
            storage_locator=data.get("storage_locator"),
            created_at=created_at,
            updated_at=_parse_datetime(data.get("updated_at")) if data.get("updated_at") else created_at,
        )
