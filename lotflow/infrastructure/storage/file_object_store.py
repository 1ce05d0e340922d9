"""File-system object store for uploaded PDFs and rendered page images."""
from __future__ import annotations

import logging
from pathlib import Path

from lotflow.domain.exceptions import EntityNotFoundError, RepositoryError

logger = logging.getLogger(__name__)


class FileObjectStore:
    """Stores blobs under ``<base_dir>/objects`` and returns relative locators."""

    def __init__(self, base_dir: str | Path = "lotflow_data") -> None:
        self.root = Path(base_dir) / "objects"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - disk failure
            raise RepositoryError(f"Failed to create object directory {self.root}", exc)

    def put_source_document(self, lot_id: str, content_hash: str, data: bytes) -> str:
        return self._write(f"sources/{lot_id}/{content_hash}.pdf", data)

    def put_page_image(self, page_id: str, data: bytes) -> str:
        return self._write(f"pages/{page_id}.png", data)

    def get_page_image_bytes(self, page_id: str) -> bytes:
        path = self.root / "pages" / f"{page_id}.png"
        if not path.exists():
            raise EntityNotFoundError("PageImage", page_id)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise RepositoryError(f"Failed to read image for page {page_id}", exc)

    def _write(self, locator: str, data: bytes) -> str:
        path = self.root / locator
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(data)
            tmp_path.replace(path)
        except OSError as exc:
            raise RepositoryError(f"Failed to store object {locator}", exc)
        logger.debug("Stored %s (%d bytes)", locator, len(data))
        return locator
