"""
Data Transfer Objects for lot queries and commands.

These DTOs are the boundary between the application layer and the API layer.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from lotflow.domain.entities.lot import Lot
from lotflow.domain.entities.page_document import PageDocument
from lotflow.domain.value_objects.page_counts import PageCounts


@dataclass(frozen=True)
class PageSummaryDTO:
    page_id: str
    source_document_id: str
    page_number: int
    status: str
    classification: Optional[str] = None
    routed_model: Optional[str] = None
    confidence: Optional[float] = None
    error_message: Optional[str] = None

    @classmethod
    def from_entity(cls, page: PageDocument) -> "PageSummaryDTO":
        return cls(
            page_id=page.page_id,
            source_document_id=page.source_document_id,
            page_number=page.page_number,
            status=page.status.value,
            classification=page.classification.value if page.classification else None,
            routed_model=page.routed_model,
            confidence=page.confidence,
            error_message=page.error_message,
        )


@dataclass(frozen=True)
class PageDocumentDTO:
    """Full page record including extracted data."""

    page_id: str
    source_document_id: str
    filename: Optional[str]
    page_number: int
    status: str
    classification: Optional[str]
    routed_model: Optional[str]
    confidence: Optional[float]
    extracted_data: Optional[Dict[str, Any]]
    field_confidences: Optional[Dict[str, float]]
    error_message: Optional[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, page: PageDocument, filename: Optional[str] = None) -> "PageDocumentDTO":
        return cls(
            page_id=page.page_id,
            source_document_id=page.source_document_id,
            filename=filename,
            page_number=page.page_number,
            status=page.status.value,
            classification=page.classification.value if page.classification else None,
            routed_model=page.routed_model,
            confidence=page.confidence,
            extracted_data=page.extracted_data,
            field_confidences=page.field_confidences,
            error_message=page.error_message,
            created_at=page.created_at,
            updated_at=page.updated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_id": self.page_id,
            "source_document_id": self.source_document_id,
            "filename": self.filename,
            "page_number": self.page_number,
            "status": self.status,
            "classification": self.classification,
            "routed_model": self.routed_model,
            "confidence": self.confidence,
            "extracted_data": self.extracted_data,
            "field_confidences": self.field_confidences,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class LotSummaryDTO:
    lot_id: str
    status: str
    total_pages: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, lot: Lot) -> "LotSummaryDTO":
        return cls(
            lot_id=lot.lot_id,
            status=lot.status.value,
            total_pages=lot.total_pages,
            created_at=lot.created_at,
            updated_at=lot.updated_at,
        )


@dataclass(frozen=True)
class LotStatusDTO:
    lot_id: str
    status: str
    total_pages: int
    counts: PageCounts
    pages: List[PageSummaryDTO]
    processed_page_ids: List[str]
    failed_page_ids: List[str]
    created_at: datetime
    updated_at: datetime

    @property
    def progress(self) -> float:
        if not self.counts.total:
            return 0.0
        return round((self.counts.extracted + self.counts.failed) / self.counts.total, 4)


@dataclass(frozen=True)
class FileErrorDTO:
    filename: str
    error: str


@dataclass(frozen=True)
class UploadResultDTO:
    lot_id: str
    status: str
    total_pages: int
    pages: List[PageSummaryDTO] = field(default_factory=list)
    errors: List[FileErrorDTO] = field(default_factory=list)


@dataclass(frozen=True)
class DocumentPageDTO:
    lot_id: str
    items: List[PageDocumentDTO]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass(frozen=True)
class ExportFileDTO:
    filename: str
    media_type: str
    content: str
