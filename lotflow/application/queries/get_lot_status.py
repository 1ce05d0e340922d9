"""GetLotStatus Query - lot status with aggregate counts and page summaries."""
from dataclasses import dataclass

from lotflow.application.dto.lot_dto import LotStatusDTO, PageSummaryDTO
from lotflow.domain.repositories.lot_repository import LotRepository
from lotflow.domain.repositories.page_repository import PageRepository
from lotflow.domain.value_objects.page_counts import PageCounts


@dataclass(frozen=True)
class GetLotStatusQuery:
    lot_id: str


class GetLotStatusHandler:
    """Handles GetLotStatus queries."""

    def __init__(self, lot_repository: LotRepository, page_repository: PageRepository):
        self._lots = lot_repository
        self._pages = page_repository

    def handle(self, query: GetLotStatusQuery) -> LotStatusDTO:
        """
        Raises:
            EntityNotFoundError: If the lot does not exist
        """
        lot = self._lots.get_lot_by_id(query.lot_id)
        pages = sorted(
            self._pages.get_pages_by_lot_id(lot.lot_id),
            key=lambda page: (page.created_at, page.source_document_id, page.page_number),
        )
        return LotStatusDTO(
            lot_id=lot.lot_id,
            status=lot.status.value,
            total_pages=lot.total_pages,
            counts=PageCounts.from_statuses(page.status for page in pages),
            pages=[PageSummaryDTO.from_entity(page) for page in pages],
            processed_page_ids=list(lot.processed_page_ids),
            failed_page_ids=list(lot.failed_page_ids),
            created_at=lot.created_at,
            updated_at=lot.updated_at,
        )
