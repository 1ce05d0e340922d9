"""UploadLot Command - turns uploaded PDFs into a lot of pending pages.

Every file is rendered before anything is stored, so unreadable files are
reported per file and never leave half-created pages behind. A storage
failure fails the lot along with every page it rendered.
"""
from __future__ import annotations

import hashlib
import logging
import uuid
from dataclasses import dataclass, replace
from typing import List, Sequence, Tuple

from lotflow.application.dto.lot_dto import FileErrorDTO, PageSummaryDTO, UploadResultDTO
from lotflow.application.ports import ObjectStore
from lotflow.application.services.pipeline_controller import PipelineController
from lotflow.domain.entities.page_document import PageDocument
from lotflow.domain.entities.source_document import SourceDocument
from lotflow.domain.exceptions import EntityValidationError, RepositoryError
from lotflow.domain.repositories.lot_repository import LotRepository
from lotflow.domain.repositories.page_repository import PageRepository
from lotflow.domain.value_objects.lot_status import LotStatus
from lotflow.infrastructure.pdf.pdf_renderer import PdfRenderError, PdfRenderer, RenderedPage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content: bytes


@dataclass(frozen=True)
class UploadLotCommand:
    files: Tuple[UploadedFile, ...]


class UploadLotHandler:
    """Handles UploadLot commands."""

    def __init__(
        self,
        lot_repository: LotRepository,
        page_repository: PageRepository,
        object_store: ObjectStore,
        renderer: PdfRenderer,
        controller: PipelineController,
        *,
        max_files: int = 50,
    ) -> None:
        self._lots = lot_repository
        self._pages = page_repository
        self._objects = object_store
        self._renderer = renderer
        self._controller = controller
        self._max_files = max_files

    def handle(self, command: UploadLotCommand) -> UploadResultDTO:
        if not command.files:
            raise EntityValidationError("files", "no files provided")
        if len(command.files) > self._max_files:
            raise EntityValidationError("files", f"at most {self._max_files} files per upload")

        rendered: List[Tuple[UploadedFile, List[RenderedPage]]] = []
        errors: List[FileErrorDTO] = []
        for upload in command.files:
            try:
                rendered_pages = self._renderer.render(upload.content)
            except PdfRenderError as exc:
                logger.warning("Rejected %s: %s", upload.filename, exc)
                errors.append(FileErrorDTO(filename=upload.filename, error=str(exc)))
                continue
            rendered.append((upload, rendered_pages))

        total_pages = sum(len(rendered_pages) for _, rendered_pages in rendered)
        lot = self._lots.create_lot(total_pages)
        sources, pages = self._build_records(lot.lot_id, rendered)
        try:
            self._write_objects(rendered, sources, pages)
            self._save_records(sources, pages)
        except RepositoryError as exc:
            logger.exception("Storing upload failed", extra={"lot_id": lot.lot_id})
            self._fail_upload(lot.lot_id, sources, pages, exc)
            raise

        status = self._controller.start_lot(lot.lot_id)
        logger.info(
            "Lot created from %d file(s) with %d page(s)",
            len(rendered),
            total_pages,
            extra={"lot_id": lot.lot_id},
        )
        return UploadResultDTO(
            lot_id=lot.lot_id,
            status=status.value,
            total_pages=total_pages,
            pages=[PageSummaryDTO.from_entity(page) for page in pages],
            errors=errors,
        )

    def _build_records(
        self,
        lot_id: str,
        rendered: Sequence[Tuple[UploadedFile, List[RenderedPage]]],
    ) -> Tuple[List[SourceDocument], List[PageDocument]]:
        """Source and page records for every rendered page, before any storage write."""
        sources: List[SourceDocument] = []
        pages: List[PageDocument] = []
        for upload, rendered_pages in rendered:
            source = SourceDocument.create(
                lot_id=lot_id,
                filename=upload.filename,
                content_hash=hashlib.sha256(upload.content).hexdigest(),
                storage_locator="",
                page_count=len(rendered_pages),
                file_size=len(upload.content),
            )
            sources.append(source)
            pages.extend(
                PageDocument.create(lot_id, source.source_id, rendered_page.page_number, page_id=uuid.uuid4().hex)
                for rendered_page in rendered_pages
            )
        return sources, pages

    def _write_objects(
        self,
        rendered: Sequence[Tuple[UploadedFile, List[RenderedPage]]],
        sources: List[SourceDocument],
        pages: List[PageDocument],
    ) -> None:
        # Records are swapped in place so a failure keeps the locators written so far.
        page_index = 0
        for position, (upload, rendered_pages) in enumerate(rendered):
            source = sources[position]
            locator = self._objects.put_source_document(source.lot_id, source.content_hash, upload.content)
            sources[position] = replace(source, storage_locator=locator)
            for rendered_page in rendered_pages:
                page = pages[page_index]
                image_locator = self._objects.put_page_image(page.page_id, rendered_page.image_bytes)
                pages[page_index] = replace(page, storage_locator=image_locator)
                page_index += 1

    def _save_records(self, sources: Sequence[SourceDocument], pages: Sequence[PageDocument]) -> None:
        for source in sources:
            self._lots.add_source_document(source)
        self._pages.add_pages(pages)

    def _fail_upload(
        self,
        lot_id: str,
        sources: Sequence[SourceDocument],
        pages: Sequence[PageDocument],
        exc: RepositoryError,
    ) -> None:
        """Record every page of the lot as failed so the lot still accounts for all of them."""
        reason = f"Upload storage failed: {exc}"
        failed = [page.fail(reason) for page in pages]
        try:
            self._save_records(sources, failed)
        finally:
            self._lots.update_lot_status(lot_id, LotStatus.FAILED, [], [page.page_id for page in failed])
