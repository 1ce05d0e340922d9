"""ListLots Query - lots ordered newest first."""
from dataclasses import dataclass
from typing import List, Optional

from lotflow.application.dto.lot_dto import LotSummaryDTO
from lotflow.domain.repositories.lot_repository import LotRepository


@dataclass(frozen=True)
class ListLotsQuery:
    limit: Optional[int] = None
    offset: int = 0


class ListLotsHandler:
    def __init__(self, lot_repository: LotRepository):
        self._lots = lot_repository

    def handle(self, query: ListLotsQuery) -> List[LotSummaryDTO]:
        lots = self._lots.find_all(limit=query.limit, offset=query.offset)
        return [LotSummaryDTO.from_entity(lot) for lot in lots]
