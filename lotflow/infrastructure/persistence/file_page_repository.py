"""File-based implementation of PageRepository."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from lotflow.domain.entities.page_document import (
    ClassificationVerdict,
    ExtractionPayload,
    PageDocument,
)
from lotflow.domain.exceptions import EntityNotFoundError, RepositoryError
from lotflow.domain.repositories.page_repository import PageRepository
from lotflow.domain.value_objects.page_counts import PageCounts
from lotflow.domain.value_objects.page_status import PageStatus

from .json_files import read_json, write_json_atomic

logger = logging.getLogger(__name__)


class FilePageRepository(PageRepository):
    """Persist each page as ``<base_dir>/pages/<page_id>.json``.

    A per-lot index (``<base_dir>/lots/<lot_id>/page_ids.json``) keeps the ordered
    page ids of every lot. Status updates run under an instance lock so the
    read-check-write of each transition is atomic.
    """

    def __init__(self, base_dir: str | Path = "lotflow_data") -> None:
        root = Path(base_dir)
        self.pages_dir = root / "pages"
        self.index_dir = root / "lots"
        self._lock = threading.RLock()
        try:
            self.pages_dir.mkdir(parents=True, exist_ok=True)
            self.index_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - disk failure
            raise RepositoryError(f"Failed to create page directories under {root}", exc)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def add_pages(self, pages: Iterable[PageDocument]) -> None:
        with self._lock:
            by_lot: dict[str, List[str]] = {}
            for page in pages:
                self._save(page)
                by_lot.setdefault(page.lot_id, []).append(page.page_id)
            for lot_id, page_ids in by_lot.items():
                existing = self._lot_page_ids(lot_id)
                known = set(existing)
                existing.extend(page_id for page_id in page_ids if page_id not in known)
                write_json_atomic(self._index_path(lot_id), existing)

    def get_page(self, page_id: str) -> Optional[PageDocument]:
        data = read_json(self._page_path(page_id))
        if data is None:
            return None
        try:
            return PageDocument.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise RepositoryError(f"Failed to hydrate page {page_id}", exc)

    def get_pages_by_ids(self, page_ids: Iterable[str]) -> List[PageDocument]:
        pages: List[PageDocument] = []
        for page_id in page_ids:
            page = self.get_page(page_id)
            if page is not None:
                pages.append(page)
        return pages

    def get_pages_by_lot_id(self, lot_id: str) -> List[PageDocument]:
        return self.get_pages_by_ids(self._lot_page_ids(lot_id))

    def get_pages_page(self, lot_id: str, page: int, limit: int) -> Tuple[List[PageDocument], int]:
        pages = sorted(
            self.get_pages_by_lot_id(lot_id),
            key=lambda item: (item.created_at, item.source_document_id, item.page_number),
        )
        start = max(0, (page - 1) * limit)
        return pages[start:start + limit], len(pages)

    def get_page_counts_by_status(self, lot_id: str) -> PageCounts:
        with self._lock:
            return PageCounts.from_statuses(page.status for page in self.get_pages_by_lot_id(lot_id))

    def update_page_classification(self, page_id: str, verdict: ClassificationVerdict) -> PageDocument:
        return self._mutate(page_id, lambda page: page.classify(verdict))

    def update_page_extraction(self, page_id: str, payload: ExtractionPayload) -> PageDocument:
        return self._mutate(page_id, lambda page: page.extract(payload))

    def update_page_status(
        self,
        page_id: str,
        status: PageStatus,
        error_message: Optional[str] = None,
    ) -> PageDocument:
        if status is not PageStatus.FAILED:
            raise ValueError(
                "Only the failed status can be set directly; use the classification/extraction updates"
            )
        return self._mutate(page_id, lambda page: page.fail(error_message))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _mutate(self, page_id: str, change: Callable[[PageDocument], PageDocument]) -> PageDocument:
        with self._lock:
            page = self.get_page(page_id)
            if page is None:
                raise EntityNotFoundError("Page", page_id)
            updated = change(page)
            self._save(updated)
        logger.debug("Page %s -> %s", page_id, updated.status.value)
        return updated

    def _lot_page_ids(self, lot_id: str) -> List[str]:
        return list(read_json(self._index_path(lot_id)) or [])

    def _page_path(self, page_id: str) -> Path:
        return self.pages_dir / f"{page_id}.json"

    def _index_path(self, lot_id: str) -> Path:
        return self.index_dir / lot_id / "page_ids.json"

    def _save(self, page: PageDocument) -> None:
        write_json_atomic(self._page_path(page.page_id), page.to_dict())
