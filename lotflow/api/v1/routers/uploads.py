"""Upload endpoints for v1 API."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool

from lotflow.api.schemas import UploadResponseSchema, upload_result_to_schema
from lotflow.api.v1.dependencies import get_upload_lot_handler
from lotflow.application.commands.upload_lot import (
    UploadedFile,
    UploadLotCommand,
    UploadLotHandler,
)
from lotflow.domain.exceptions import EntityValidationError, RepositoryError

router = APIRouter(tags=["uploads"])

PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf"}


@router.post("/upload", response_model=UploadResponseSchema, status_code=201)
async def upload_lot(
    files: Optional[List[UploadFile]] = File(None),
    handler: UploadLotHandler = Depends(get_upload_lot_handler),
) -> UploadResponseSchema:
    if not files:
        raise HTTPException(status_code=400, detail="At least one PDF file is required")

    uploads: List[UploadedFile] = []
    for upload in files:
        if not upload.filename:
            raise HTTPException(status_code=400, detail="Filename is required")
        is_pdf_name = Path(upload.filename).suffix.lower() == ".pdf"
        if not is_pdf_name and upload.content_type not in PDF_CONTENT_TYPES:
            raise HTTPException(status_code=400, detail=f"Only PDF files are supported: {upload.filename}")
        uploads.append(UploadedFile(filename=upload.filename, content=await upload.read()))

    try:
        result = await run_in_threadpool(handler.handle, UploadLotCommand(files=tuple(uploads)))
    except EntityValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RepositoryError as exc:
        raise HTTPException(status_code=500, detail="Failed to store upload") from exc

    if result.errors and len(result.errors) == len(uploads):
        raise HTTPException(
            status_code=500,
            detail={
                "message": "Every file failed to process",
                "lotId": result.lot_id,
                "errors": [{"filename": error.filename, "error": error.error} for error in result.errors],
            },
        )
    return upload_result_to_schema(result)
