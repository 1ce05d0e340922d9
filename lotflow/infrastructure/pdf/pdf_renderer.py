"""PDF rendering utilities for the infrastructure layer."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

import fitz  # type: ignore

from lotflow.constants import PAGE_IMAGE_MIME

logger = logging.getLogger(__name__)


class PdfRenderError(ValueError):
    """Raised when an uploaded file cannot be opened or rendered as a PDF."""


@dataclass(frozen=True)
class RenderedPage:
    """PNG bytes generated from one PDF page."""

    page_number: int
    image_bytes: bytes
    image_mime: str = PAGE_IMAGE_MIME

    def __post_init__(self) -> None:
        if self.page_number < 1:
            raise ValueError("page_number must be >= 1")


class PdfRenderer:
    """Renders in-memory PDF documents to page images."""

    def __init__(self, *, zoom: float = 2.0) -> None:
        self._zoom = zoom

    def get_page_count(self, pdf_bytes: bytes) -> int:
        with self._open(pdf_bytes) as document:
            return document.page_count

    def render(self, pdf_bytes: bytes) -> List[RenderedPage]:
        """Render every page to PNG; raises :class:`PdfRenderError` for unreadable input."""
        rendered_pages: List[RenderedPage] = []
        matrix = fitz.Matrix(self._zoom, self._zoom)

        with self._open(pdf_bytes) as document:
            if document.page_count == 0:
                raise PdfRenderError("PDF has no pages")
            try:
                for index in range(document.page_count):
                    page = document.load_page(index)
                    pixmap = page.get_pixmap(matrix=matrix, alpha=False)
                    rendered_pages.append(
                        RenderedPage(page_number=index + 1, image_bytes=pixmap.tobytes("png"))
                    )
            except RuntimeError as exc:
                raise PdfRenderError(f"Failed to render page {len(rendered_pages) + 1}: {exc}") from exc

        logger.debug("Rendered %d page(s) at zoom %.1f", len(rendered_pages), self._zoom)
        return rendered_pages

    @staticmethod
    def _open(pdf_bytes: bytes):
        if not pdf_bytes:
            raise PdfRenderError("File is empty")
        try:
            return fitz.open(stream=pdf_bytes, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise PdfRenderError(f"File is not a readable PDF: {exc}") from exc
