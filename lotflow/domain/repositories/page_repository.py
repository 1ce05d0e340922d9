"""Page repository interface (Abstract Base Class)."""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Tuple

from lotflow.domain.entities.page_document import (
    ClassificationVerdict,
    ExtractionPayload,
    PageDocument,
)
from lotflow.domain.value_objects.page_counts import PageCounts
from lotflow.domain.value_objects.page_status import PageStatus


class PageRepository(ABC):
    """Abstract repository responsible for persisting page documents.

    Update methods enforce the page state machine atomically and raise
    ``InvalidStatusTransitionError`` when the stored page cannot make the
    requested move.
    """

    @abstractmethod
    def add_pages(self, pages: Iterable[PageDocument]) -> None:
        """Persist newly created pages."""

    @abstractmethod
    def get_page(self, page_id: str) -> Optional[PageDocument]:
        """Return the page, if it exists."""

    @abstractmethod
    def get_pages_by_ids(self, page_ids: Iterable[str]) -> List[PageDocument]:
        """Return the pages that exist among ``page_ids``, in request order."""

    @abstractmethod
    def get_pages_by_lot_id(self, lot_id: str) -> List[PageDocument]:
        """Return all pages of a lot."""

    @abstractmethod
    def get_pages_page(self, lot_id: str, page: int, limit: int) -> Tuple[List[PageDocument], int]:
        """Return one page of a lot's pages (1-based) and the total count."""

    @abstractmethod
    def get_page_counts_by_status(self, lot_id: str) -> PageCounts:
        """Return aggregate counts of the lot's pages by status."""

    @abstractmethod
    def update_page_classification(self, page_id: str, verdict: ClassificationVerdict) -> PageDocument:
        """Record a classification and move the page to ``classified``."""

    @abstractmethod
    def update_page_extraction(self, page_id: str, payload: ExtractionPayload) -> PageDocument:
        """Record extracted data and move the page to ``extracted``."""

    @abstractmethod
    def update_page_status(
        self,
        page_id: str,
        status: PageStatus,
        error_message: Optional[str] = None,
    ) -> PageDocument:
        """Move the page to ``status`` (normally ``failed``) with a reason."""
