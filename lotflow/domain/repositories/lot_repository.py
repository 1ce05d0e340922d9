"""Lot repository interface (Abstract Base Class)."""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from lotflow.domain.entities.lot import Lot
from lotflow.domain.entities.source_document import SourceDocument
from lotflow.domain.value_objects.lot_status import LotStatus


class LotRepository(ABC):
    """Abstract repository for Lot aggregates and their source documents."""

    @abstractmethod
    def create_lot(self, total_pages: int) -> Lot:
        """Create and persist a new lot in ``uploading`` status."""

    @abstractmethod
    def get_lot_by_id(self, lot_id: str) -> Lot:
        """Return the lot; raise ``EntityNotFoundError`` when it does not exist."""

    @abstractmethod
    def find_by_id(self, lot_id: str) -> Optional[Lot]:
        """Return the lot with the provided identifier, if it exists."""

    @abstractmethod
    def find_all(self, limit: Optional[int] = None, offset: int = 0) -> List[Lot]:
        """Return lots ordered by ``created_at`` descending."""

    @abstractmethod
    def update_lot_status(
        self,
        lot_id: str,
        status: LotStatus,
        processed_ids: Sequence[str],
        failed_ids: Sequence[str],
    ) -> Lot:
        """Move the lot to ``status`` and record processed/failed page ids."""

    @abstractmethod
    def transition_status(self, lot_id: str, expected: LotStatus, new: LotStatus) -> bool:
        """Atomically set ``new`` only if the lot is currently ``expected``.

        Returns ``False`` (and writes nothing) when the current status differs.
        """

    @abstractmethod
    def add_source_document(self, document: SourceDocument) -> SourceDocument:
        """Persist a source document owned by an existing lot."""

    @abstractmethod
    def list_source_documents(self, lot_id: str) -> List[SourceDocument]:
        """Return the source documents of a lot."""
