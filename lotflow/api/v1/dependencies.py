"""Shared FastAPI dependencies for v1 API routers.

Handlers are built once by :func:`lotflow.bootstrap.build_pipeline` and kept
on ``app.state``; these callables hand them to the routes.
"""
from __future__ import annotations

from fastapi import Request

from lotflow.application.commands.upload_lot import UploadLotHandler
from lotflow.application.queries.export_lot_documents import ExportLotDocumentsHandler
from lotflow.application.queries.get_lot_status import GetLotStatusHandler
from lotflow.application.queries.list_lot_documents import ListLotDocumentsHandler
from lotflow.application.queries.list_lots import ListLotsHandler
from lotflow.bootstrap import Pipeline


def get_pipeline(request: Request) -> Pipeline:
    return request.app.state.pipeline


def get_upload_lot_handler(request: Request) -> UploadLotHandler:
    return get_pipeline(request).upload_handler


def get_lot_status_handler(request: Request) -> GetLotStatusHandler:
    return get_pipeline(request).lot_status_handler


def get_list_lots_handler(request: Request) -> ListLotsHandler:
    return get_pipeline(request).list_lots_handler


def get_lot_documents_handler(request: Request) -> ListLotDocumentsHandler:
    return get_pipeline(request).documents_handler


def get_export_handler(request: Request) -> ExportLotDocumentsHandler:
    return get_pipeline(request).export_handler
