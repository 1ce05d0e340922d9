"""
API Schemas
"""
from .lot_schemas import (
    DocumentListResponseSchema,
    FileErrorSchema,
    LotListResponseSchema,
    LotStatusSchema,
    LotSummarySchema,
    PageCountsSchema,
    PageDocumentSchema,
    PageSummarySchema,
    PaginationSchema,
    UploadResponseSchema,
    document_page_to_schema,
    lot_status_to_schema,
    lot_summary_to_schema,
    upload_result_to_schema,
)

__all__ = [
    "DocumentListResponseSchema",
    "FileErrorSchema",
    "LotListResponseSchema",
    "LotStatusSchema",
    "LotSummarySchema",
    "PageCountsSchema",
    "PageDocumentSchema",
    "PageSummarySchema",
    "PaginationSchema",
    "UploadResponseSchema",
    "document_page_to_schema",
    "lot_status_to_schema",
    "lot_summary_to_schema",
    "upload_result_to_schema",
]
