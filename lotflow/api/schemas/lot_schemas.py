"""
Schemas for lot upload, status and document endpoints
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from lotflow.application.dto.lot_dto import (
    DocumentPageDTO,
    LotStatusDTO,
    LotSummaryDTO,
    PageDocumentDTO,
    PageSummaryDTO,
    UploadResultDTO,
)


class PageCountsSchema(BaseModel):
    total: int
    pending: int
    classified: int
    extracted: int
    failed: int


class PageSummarySchema(BaseModel):
    pageId: str
    sourceDocumentId: str
    pageNumber: int
    status: str
    classification: Optional[str] = None
    routedModel: Optional[str] = None
    confidence: Optional[float] = None
    errorMessage: Optional[str] = None


class FileErrorSchema(BaseModel):
    filename: str
    error: str


class UploadResponseSchema(BaseModel):
    lotId: str
    status: str
    totalPages: int
    pages: List[PageSummarySchema] = Field(default_factory=list)
    errors: List[FileErrorSchema] = Field(default_factory=list)


class LotStatusSchema(BaseModel):
    lotId: str
    status: str
    totalPages: int
    progress: float
    counts: PageCountsSchema
    pages: List[PageSummarySchema] = Field(default_factory=list)
    processedPageIds: List[str] = Field(default_factory=list)
    failedPageIds: List[str] = Field(default_factory=list)
    createdAt: datetime
    updatedAt: datetime


class LotSummarySchema(BaseModel):
    lotId: str
    status: str
    totalPages: int
    createdAt: datetime
    updatedAt: datetime


class LotListResponseSchema(BaseModel):
    lots: List[LotSummarySchema] = Field(default_factory=list)


class PageDocumentSchema(BaseModel):
    pageId: str
    sourceDocumentId: str
    filename: Optional[str] = None
    pageNumber: int
    status: str
    classification: Optional[str] = None
    routedModel: Optional[str] = None
    confidence: Optional[float] = None
    extractedData: Optional[Dict[str, Any]] = None
    fieldConfidences: Optional[Dict[str, float]] = None
    errorMessage: Optional[str] = None
    createdAt: datetime
    updatedAt: datetime


class PaginationSchema(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class DocumentListResponseSchema(BaseModel):
    lotId: str
    documents: List[PageDocumentSchema] = Field(default_factory=list)
    pagination: PaginationSchema


def page_summary_to_schema(dto: PageSummaryDTO) -> PageSummarySchema:
    return PageSummarySchema(
        pageId=dto.page_id,
        sourceDocumentId=dto.source_document_id,
        pageNumber=dto.page_number,
        status=dto.status,
        classification=dto.classification,
        routedModel=dto.routed_model,
        confidence=dto.confidence,
        errorMessage=dto.error_message,
    )


def upload_result_to_schema(dto: UploadResultDTO) -> UploadResponseSchema:
    return UploadResponseSchema(
        lotId=dto.lot_id,
        status=dto.status,
        totalPages=dto.total_pages,
        pages=[page_summary_to_schema(page) for page in dto.pages],
        errors=[FileErrorSchema(filename=error.filename, error=error.error) for error in dto.errors],
    )


def lot_status_to_schema(dto: LotStatusDTO) -> LotStatusSchema:
    return LotStatusSchema(
        lotId=dto.lot_id,
        status=dto.status,
        totalPages=dto.total_pages,
        progress=dto.progress,
        counts=PageCountsSchema(**dto.counts.to_dict()),
        pages=[page_summary_to_schema(page) for page in dto.pages],
        processedPageIds=dto.processed_page_ids,
        failedPageIds=dto.failed_page_ids,
        createdAt=dto.created_at,
        updatedAt=dto.updated_at,
    )


def lot_summary_to_schema(dto: LotSummaryDTO) -> LotSummarySchema:
    return LotSummarySchema(
        lotId=dto.lot_id,
        status=dto.status,
        totalPages=dto.total_pages,
        createdAt=dto.created_at,
        updatedAt=dto.updated_at,
    )


def page_document_to_schema(dto: PageDocumentDTO) -> PageDocumentSchema:
    return PageDocumentSchema(
        pageId=dto.page_id,
        sourceDocumentId=dto.source_document_id,
        filename=dto.filename,
        pageNumber=dto.page_number,
        status=dto.status,
        classification=dto.classification,
        routedModel=dto.routed_model,
        confidence=dto.confidence,
        extractedData=dto.extracted_data,
        fieldConfidences=dto.field_confidences,
        errorMessage=dto.error_message,
        createdAt=dto.created_at,
        updatedAt=dto.updated_at,
    )


def document_page_to_schema(dto: DocumentPageDTO) -> DocumentListResponseSchema:
    return DocumentListResponseSchema(
        lotId=dto.lot_id,
        documents=[page_document_to_schema(item) for item in dto.items],
        pagination=PaginationSchema(
            page=dto.page,
            limit=dto.limit,
            total=dto.total,
            totalPages=dto.total_pages,
        ),
    )
