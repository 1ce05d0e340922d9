"""ExportLotDocuments Query - CSV or JSON download of a lot's pages."""
from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass
from typing import Dict, List

from lotflow.application.dto.lot_dto import ExportFileDTO, PageDocumentDTO
from lotflow.domain.exceptions import EntityValidationError
from lotflow.domain.repositories.lot_repository import LotRepository
from lotflow.domain.repositories.page_repository import PageRepository

EXPORT_FORMATS = ("csv", "json")

CSV_COLUMNS = [
    "page_id",
    "filename",
    "page_number",
    "status",
    "classification",
    "routed_model",
    "confidence",
    "fields",
    "tables",
    "metadata",
    "field_confidences",
    "error_message",
]


@dataclass(frozen=True)
class ExportLotDocumentsQuery:
    lot_id: str
    format: str


class ExportLotDocumentsHandler:
    def __init__(self, lot_repository: LotRepository, page_repository: PageRepository):
        self._lots = lot_repository
        self._pages = page_repository

    def handle(self, query: ExportLotDocumentsQuery) -> ExportFileDTO:
        export_format = (query.format or "").lower()
        if export_format not in EXPORT_FORMATS:
            raise EntityValidationError("format", f"must be one of {', '.join(EXPORT_FORMATS)}")

        lot = self._lots.get_lot_by_id(query.lot_id)
        filenames = {source.source_id: source.filename for source in self._lots.list_source_documents(lot.lot_id)}
        pages = sorted(
            self._pages.get_pages_by_lot_id(lot.lot_id),
            key=lambda page: (page.created_at, page.source_document_id, page.page_number),
        )
        documents = [PageDocumentDTO.from_entity(page, filenames.get(page.source_document_id)) for page in pages]

        if export_format == "json":
            content = json.dumps(
                {"lot_id": lot.lot_id, "status": lot.status.value, "documents": [doc.to_dict() for doc in documents]},
                indent=2,
            )
            return ExportFileDTO(f"lot-{lot.lot_id}.json", "application/json", content)
        return ExportFileDTO(f"lot-{lot.lot_id}.csv", "text/csv", _to_csv(documents))


def _to_csv(documents: List[PageDocumentDTO]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS)
    writer.writeheader()
    for doc in documents:
        data: Dict = doc.extracted_data or {}
        writer.writerow(
            {
                "page_id": doc.page_id,
                "filename": doc.filename or "",
                "page_number": doc.page_number,
                "status": doc.status,
                "classification": doc.classification or "",
                "routed_model": doc.routed_model or "",
                "confidence": "" if doc.confidence is None else doc.confidence,
                "fields": _json_cell(data.get("fields")),
                "tables": _json_cell(data.get("tables")),
                "metadata": _json_cell(data.get("metadata")),
                "field_confidences": _json_cell(doc.field_confidences),
                "error_message": doc.error_message or "",
            }
        )
    return buffer.getvalue()


def _json_cell(value) -> str:
    return "" if value is None else json.dumps(value, ensure_ascii=False)
