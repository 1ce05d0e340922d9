"""ListLotDocuments Query - paginated page documents of a lot."""
from dataclasses import dataclass

from lotflow.application.dto.lot_dto import DocumentPageDTO, PageDocumentDTO
from lotflow.domain.exceptions import EntityValidationError
from lotflow.domain.repositories.lot_repository import LotRepository
from lotflow.domain.repositories.page_repository import PageRepository

DEFAULT_PAGE_LIMIT = 25
MAX_PAGE_LIMIT = 100


@dataclass(frozen=True)
class ListLotDocumentsQuery:
    lot_id: str
    page: int = 1
    limit: int = DEFAULT_PAGE_LIMIT


class ListLotDocumentsHandler:
    """Handles ListLotDocuments queries."""

    def __init__(self, lot_repository: LotRepository, page_repository: PageRepository):
        self._lots = lot_repository
        self._pages = page_repository

    def handle(self, query: ListLotDocumentsQuery) -> DocumentPageDTO:
        if query.page < 1:
            raise EntityValidationError("page", "must be >= 1")
        if not 1 <= query.limit <= MAX_PAGE_LIMIT:
            raise EntityValidationError("limit", f"must be between 1 and {MAX_PAGE_LIMIT}")

        lot = self._lots.get_lot_by_id(query.lot_id)
        filenames = {source.source_id: source.filename for source in self._lots.list_source_documents(lot.lot_id)}
        items, total = self._pages.get_pages_page(lot.lot_id, query.page, query.limit)
        return DocumentPageDTO(
            lot_id=lot.lot_id,
            items=[PageDocumentDTO.from_entity(page, filenames.get(page.source_document_id)) for page in items],
            page=query.page,
            limit=query.limit,
            total=total,
        )
