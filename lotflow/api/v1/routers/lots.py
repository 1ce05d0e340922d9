"""Lot status, listing and export routes for v1 endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from lotflow.api.schemas import (
    DocumentListResponseSchema,
    LotListResponseSchema,
    LotStatusSchema,
    document_page_to_schema,
    lot_status_to_schema,
    lot_summary_to_schema,
)
from lotflow.api.v1.dependencies import (
    get_export_handler,
    get_list_lots_handler,
    get_lot_documents_handler,
    get_lot_status_handler,
)
from lotflow.application.queries.export_lot_documents import (
    ExportLotDocumentsHandler,
    ExportLotDocumentsQuery,
)
from lotflow.application.queries.get_lot_status import GetLotStatusHandler, GetLotStatusQuery
from lotflow.application.queries.list_lot_documents import (
    DEFAULT_PAGE_LIMIT,
    ListLotDocumentsHandler,
    ListLotDocumentsQuery,
)
from lotflow.application.queries.list_lots import ListLotsHandler, ListLotsQuery
from lotflow.domain.exceptions import EntityNotFoundError, EntityValidationError, RepositoryError

router = APIRouter(tags=["lots"])


@router.get("/lots", response_model=LotListResponseSchema)
def list_lots(handler: ListLotsHandler = Depends(get_list_lots_handler)) -> LotListResponseSchema:
    try:
        lots = handler.handle(ListLotsQuery())
    except RepositoryError as exc:
        raise HTTPException(status_code=500, detail="Failed to list lots") from exc
    return LotListResponseSchema(lots=[lot_summary_to_schema(lot) for lot in lots])


@router.get("/lot/{lot_id}/status", response_model=LotStatusSchema)
def get_lot_status(
    lot_id: str,
    handler: GetLotStatusHandler = Depends(get_lot_status_handler),
) -> LotStatusSchema:
    try:
        dto = handler.handle(GetLotStatusQuery(lot_id=lot_id))
    except EntityNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RepositoryError as exc:
        raise HTTPException(status_code=500, detail="Failed to load lot status") from exc
    return lot_status_to_schema(dto)


@router.get("/lot/{lot_id}/documents", response_model=DocumentListResponseSchema)
def list_lot_documents(
    lot_id: str,
    page: int = Query(1),
    limit: int = Query(DEFAULT_PAGE_LIMIT),
    handler: ListLotDocumentsHandler = Depends(get_lot_documents_handler),
) -> DocumentListResponseSchema:
    try:
        dto = handler.handle(ListLotDocumentsQuery(lot_id=lot_id, page=page, limit=limit))
    except EntityNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except EntityValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RepositoryError as exc:
        raise HTTPException(status_code=500, detail="Failed to load documents") from exc
    return document_page_to_schema(dto)


@router.get("/lot/{lot_id}/export/{export_format}")
def export_lot(
    lot_id: str,
    export_format: str,
    handler: ExportLotDocumentsHandler = Depends(get_export_handler),
) -> Response:
    try:
        export = handler.handle(ExportLotDocumentsQuery(lot_id=lot_id, format=export_format))
    except EntityNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except EntityValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RepositoryError as exc:
        raise HTTPException(status_code=500, detail="Failed to export lot") from exc

    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )
