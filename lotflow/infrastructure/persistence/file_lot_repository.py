"""File-based implementation of LotRepository."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import List, Optional, Sequence

from lotflow.domain.entities.lot import Lot
from lotflow.domain.entities.source_document import SourceDocument
from lotflow.domain.exceptions import EntityNotFoundError, RepositoryError
from lotflow.domain.repositories.lot_repository import LotRepository
from lotflow.domain.value_objects.lot_status import LotStatus

from .json_files import read_json, write_json_atomic

logger = logging.getLogger(__name__)


class FileLotRepository(LotRepository):
    """Persist lots as JSON snapshots on disk.

    Layout: ``<base_dir>/lots/<lot_id>/lot.json`` and ``sources.json``.
    Read-modify-write operations are serialized by an instance lock, which
    makes ``transition_status`` a compare-and-set for every caller sharing
    this repository.
    """

    def __init__(self, base_dir: str | Path = "lotflow_data") -> None:
        self.base_dir = Path(base_dir) / "lots"
        self._lock = threading.RLock()
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - disk failure
            raise RepositoryError(f"Failed to create base directory {self.base_dir}", exc)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def create_lot(self, total_pages: int) -> Lot:
        lot = Lot.create(total_pages=total_pages)
        with self._lock:
            self._save(lot)
        logger.info("Created lot %s", lot.lot_id, extra={"lot_id": lot.lot_id, "total_pages": total_pages})
        return lot

    def get_lot_by_id(self, lot_id: str) -> Lot:
        lot = self.find_by_id(lot_id)
        if lot is None:
            raise EntityNotFoundError("Lot", lot_id, message=f"Lot {lot_id} not found")
        return lot

    def find_by_id(self, lot_id: str) -> Optional[Lot]:
        data = read_json(self._lot_path(lot_id))
        if data is None:
            return None
        try:
            return Lot.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise RepositoryError(f"Failed to hydrate lot {lot_id}", exc)

    def find_all(self, limit: Optional[int] = None, offset: int = 0) -> List[Lot]:
        lots: List[Lot] = []
        for lot_dir in self.base_dir.iterdir():
            if not lot_dir.is_dir():
                continue
            try:
                lot = self.find_by_id(lot_dir.name)
            except RepositoryError as exc:
                logger.warning("Skipping lot %s due to snapshot error: %s", lot_dir.name, exc)
                continue
            if lot is not None:
                lots.append(lot)

        lots.sort(key=lambda lot: lot.created_at, reverse=True)
        end = None if limit is None else offset + limit
        return lots[offset:end]

    def update_lot_status(
        self,
        lot_id: str,
        status: LotStatus,
        processed_ids: Sequence[str],
        failed_ids: Sequence[str],
    ) -> Lot:
        with self._lock:
            lot = self.get_lot_by_id(lot_id)
            if lot.status is not status:
                lot = lot.transition_to(status)
            lot = lot.with_page_outcomes(processed_ids, failed_ids)
            self._save(lot)
        return lot

    def transition_status(self, lot_id: str, expected: LotStatus, new: LotStatus) -> bool:
        with self._lock:
            lot = self.get_lot_by_id(lot_id)
            if lot.status is not expected:
                logger.debug(
                    "Lot %s is %s, not %s; skipping transition to %s",
                    lot_id,
                    lot.status.value,
                    expected.value,
                    new.value,
                )
                return False
            self._save(lot.transition_to(new))
        return True

    def add_source_document(self, document: SourceDocument) -> SourceDocument:
        with self._lock:
            if not self._lot_path(document.lot_id).exists():
                raise EntityNotFoundError("Lot", document.lot_id)
            sources = read_json(self._sources_path(document.lot_id)) or []
            sources.append(document.to_dict())
            write_json_atomic(self._sources_path(document.lot_id), sources)
        return document

    def list_source_documents(self, lot_id: str) -> List[SourceDocument]:
        entries = read_json(self._sources_path(lot_id)) or []
        return [SourceDocument.from_dict(entry) for entry in entries if isinstance(entry, dict)]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _lot_path(self, lot_id: str) -> Path:
        return self.base_dir / lot_id / "lot.json"

    def _sources_path(self, lot_id: str) -> Path:
        return self.base_dir / lot_id / "sources.json"

    def _save(self, lot: Lot) -> None:
        write_json_atomic(self._lot_path(lot.lot_id), lot.to_dict())
        logger.debug("Saved lot %s (%s)", lot.lot_id, lot.status.value)
