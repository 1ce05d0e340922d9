"""Builds the pipeline object graph once per process."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from lotflow.application.commands.upload_lot import UploadLotHandler
from lotflow.application.ports import InferenceGateway, JobQueue
from lotflow.application.queries.export_lot_documents import ExportLotDocumentsHandler
from lotflow.application.queries.get_lot_status import GetLotStatusHandler
from lotflow.application.queries.list_lot_documents import ListLotDocumentsHandler
from lotflow.application.queries.list_lots import ListLotsHandler
from lotflow.application.services.batch_coordinator import BatchCoordinator
from lotflow.application.services.dispatcher import JobDispatcher
from lotflow.application.services.page_classifier import PageClassifier
from lotflow.application.services.page_extractor import PageExtractor
from lotflow.application.services.page_stage import PageStageSupport
from lotflow.application.services.pipeline_controller import PipelineController
from lotflow.application.workers import PipelineWorkers
from lotflow.config import Settings, get_settings
from lotflow.constants import BATCH_QUEUE, CLASSIFICATION_QUEUE, EXTRACTION_QUEUE
from lotflow.domain.services.model_router import ModelRouter
from lotflow.infrastructure.inference.openai_gateway import OpenAIInferenceGateway
from lotflow.infrastructure.pdf.pdf_renderer import PdfRenderer
from lotflow.infrastructure.persistence.file_lot_repository import FileLotRepository
from lotflow.infrastructure.persistence.file_page_repository import FilePageRepository
from lotflow.infrastructure.queue.in_process_queue import InProcessJobQueue, QueueOptions
from lotflow.infrastructure.storage.file_object_store import FileObjectStore

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    settings: Settings
    lot_repository: FileLotRepository
    page_repository: FilePageRepository
    object_store: FileObjectStore
    queue: JobQueue
    controller: PipelineController
    coordinator: BatchCoordinator
    workers: PipelineWorkers
    upload_handler: UploadLotHandler
    lot_status_handler: GetLotStatusHandler
    list_lots_handler: ListLotsHandler
    documents_handler: ListLotDocumentsHandler
    export_handler: ExportLotDocumentsHandler

    def shutdown(self) -> None:
        stop = getattr(self.queue, "shutdown", None)
        if stop is not None:
            stop(wait=False)


def build_queue(settings: Settings) -> InProcessJobQueue:
    queue = InProcessJobQueue()
    page_options = QueueOptions(
        concurrency=settings.page_worker_concurrency,
        attempts=settings.page_job_attempts,
        backoff_seconds=settings.job_backoff_seconds,
        rate_limit_max=settings.page_rate_limit_max,
        rate_limit_window_seconds=settings.page_rate_limit_window_seconds,
        lock_duration_seconds=settings.job_lock_seconds,
    )
    queue.declare(CLASSIFICATION_QUEUE, page_options)
    queue.declare(EXTRACTION_QUEUE, page_options)
    queue.declare(
        BATCH_QUEUE,
        QueueOptions(
            concurrency=settings.batch_worker_concurrency,
            attempts=settings.batch_job_attempts,
            backoff_seconds=settings.job_backoff_seconds,
            lock_duration_seconds=settings.job_lock_seconds,
        ),
    )
    return queue


def build_pipeline(
    settings: Optional[Settings] = None,
    *,
    gateway: Optional[InferenceGateway] = None,
    queue: Optional[JobQueue] = None,
) -> Pipeline:
    """Wire every collaborator; ``gateway`` and ``queue`` may be supplied by the caller."""
    settings = settings or get_settings()
    gateway = gateway or OpenAIInferenceGateway(settings)
    queue = queue or build_queue(settings)

    lots = FileLotRepository(settings.data_dir)
    pages = FilePageRepository(settings.data_dir)
    objects = FileObjectStore(settings.data_dir)
    router = ModelRouter(
        high_capability_model=settings.high_capability_model,
        low_cost_model=settings.low_cost_model,
        route_mixed_to_high_capability=settings.route_mixed_to_high_capability,
    )
    support = PageStageSupport(pages, objects, router)
    dispatcher = JobDispatcher(queue, sub_batch_size=settings.job_sub_batch_size)
    controller = PipelineController(
        lots, pages, dispatcher, batch_api_threshold=settings.batch_api_threshold
    )
    classifier = PageClassifier(
        gateway,
        support,
        model=settings.classification_model,
        request_size=settings.classification_request_size,
    )
    extractor = PageExtractor(gateway, support, request_size=settings.extraction_request_size)
    coordinator = BatchCoordinator(
        gateway,
        pages,
        support,
        dispatcher,
        controller,
        classification_model=settings.classification_model,
        chunk_size=settings.batch_chunk_size,
        poll_delay_seconds=settings.batch_poll_delay_seconds,
        poll_max_attempts=settings.batch_poll_max_attempts,
    )
    workers = PipelineWorkers(queue, controller, classifier, extractor, coordinator, support)
    workers.register()

    logger.info("Pipeline ready (data_dir=%s)", settings.data_dir)
    return Pipeline(
        settings=settings,
        lot_repository=lots,
        page_repository=pages,
        object_store=objects,
        queue=queue,
        controller=controller,
        coordinator=coordinator,
        workers=workers,
        upload_handler=UploadLotHandler(
            lots,
            pages,
            objects,
            PdfRenderer(zoom=settings.render_zoom),
            controller,
            max_files=settings.max_upload_files,
        ),
        lot_status_handler=GetLotStatusHandler(lots, pages),
        list_lots_handler=ListLotsHandler(lots),
        documents_handler=ListLotDocumentsHandler(lots, pages),
        export_handler=ExportLotDocumentsHandler(lots, pages),
    )
