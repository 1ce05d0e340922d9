"""Unit tests for the lot state machine driver."""
import threading
from unittest.mock import Mock

import pytest

from lotflow.application.jobs import BatchSubmitJob, ClassificationJob, ExtractionJob
from lotflow.application.services.dispatcher import JobDispatcher
from lotflow.application.services.pipeline_controller import PipelineController, StageDecision
from lotflow.constants import BATCH_QUEUE, CLASSIFICATION_QUEUE, EXTRACTION_QUEUE
from lotflow.domain.entities.page_document import ClassificationVerdict, ExtractionPayload
from lotflow.domain.value_objects.lot_status import LotStatus
from lotflow.domain.value_objects.page_status import PageStatus
from lotflow.domain.value_objects.stage import Stage


def classify_all(pipeline, page_ids):
    for page_id in page_ids:
        pipeline.page_repository.update_page_classification(
            page_id, ClassificationVerdict(category="typed", confidence=0.9, routed_model="model-low")
        )


def extract_all(pipeline, page_ids):
    for page_id in page_ids:
        pipeline.page_repository.update_page_extraction(page_id, ExtractionPayload(data={"fields": {}}, confidence=0.7))


def fail(pipeline, page_ids):
    for page_id in page_ids:
        pipeline.page_repository.update_page_status(page_id, PageStatus.FAILED, "boom")


def lot_status(pipeline, lot_id):
    return pipeline.lot_repository.get_lot_by_id(lot_id).status


def run_concurrently(count, call):
    barrier = threading.Barrier(count)
    results = []

    def worker():
        barrier.wait()
        results.append(call())

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)
    return results


@pytest.fixture
def started(pipeline, seed_lot, queue):
    def _start(count):
        lot, page_ids = seed_lot(count)
        pipeline.controller.start_lot(lot.lot_id)
        queue.pending.clear()
        return lot, page_ids

    return _start


class TestStartLot:
    def test_small_lot_dispatches_immediate_jobs(self, pipeline, seed_lot, queue):
        lot, page_ids = seed_lot(4)

        status = pipeline.controller.start_lot(lot.lot_id)

        assert status is LotStatus.CLASSIFYING
        assert lot_status(pipeline, lot.lot_id) is LotStatus.CLASSIFYING
        jobs = queue.payloads(CLASSIFICATION_QUEUE)
        assert jobs == [
            ClassificationJob(lot.lot_id, tuple(page_ids[:3])),
            ClassificationJob(lot.lot_id, tuple(page_ids[3:])),
        ]

    def test_large_lot_goes_through_bulk_submission(self, pipeline, seed_lot, queue):
        lot, _ = seed_lot(6)

        pipeline.controller.start_lot(lot.lot_id)

        assert queue.payloads(BATCH_QUEUE) == [BatchSubmitJob(lot.lot_id, Stage.CLASSIFICATION)]
        assert queue.payloads(CLASSIFICATION_QUEUE) == []

    def test_threshold_is_exclusive(self, pipeline, seed_lot, queue):
        lot, _ = seed_lot(5)

        pipeline.controller.start_lot(lot.lot_id)

        assert queue.payloads(BATCH_QUEUE) == []
        assert len(queue.payloads(CLASSIFICATION_QUEUE)) == 2

    def test_lot_without_pages_fails(self, pipeline, queue):
        lot = pipeline.lot_repository.create_lot(0)

        assert pipeline.controller.start_lot(lot.lot_id) is LotStatus.FAILED
        assert lot_status(pipeline, lot.lot_id) is LotStatus.FAILED
        assert queue.history == []

    def test_second_start_does_not_dispatch_again(self, pipeline, seed_lot, queue):
        lot, _ = seed_lot(2)
        pipeline.controller.start_lot(lot.lot_id)

        assert pipeline.controller.start_lot(lot.lot_id) is LotStatus.CLASSIFYING
        assert len(queue.history) == 1

    def test_dispatch_error_leaves_lot_uploading(self, pipeline, seed_lot):
        lot, _ = seed_lot(2)
        dispatcher = Mock(spec=JobDispatcher)
        dispatcher.enqueue_classification.side_effect = RuntimeError("queue down")
        controller = PipelineController(pipeline.lot_repository, pipeline.page_repository, dispatcher, batch_api_threshold=5)

        with pytest.raises(RuntimeError):
            controller.start_lot(lot.lot_id)

        assert lot_status(pipeline, lot.lot_id) is LotStatus.UPLOADING


class TestClassificationCheck:
    def test_concurrent_checks_dispatch_extraction_once(self, pipeline, started, queue):
        lot, page_ids = started(3)
        classify_all(pipeline, page_ids)

        decisions = run_concurrently(8, lambda: pipeline.controller.check_classification_complete(lot.lot_id))

        assert len(decisions) == 8
        assert decisions.count(StageDecision.DISPATCHED_EXTRACTION) == 1
        assert decisions.count(StageDecision.NONE) == 7
        (job,) = queue.payloads(EXTRACTION_QUEUE)
        assert set(job.page_ids) == set(page_ids)
        assert lot_status(pipeline, lot.lot_id) is LotStatus.EXTRACTING

    def test_waits_while_pages_are_pending(self, pipeline, started, queue):
        lot, page_ids = started(3)
        classify_all(pipeline, page_ids[:2])

        assert pipeline.controller.check_classification_complete(lot.lot_id) is StageDecision.NONE
        assert lot_status(pipeline, lot.lot_id) is LotStatus.CLASSIFYING
        assert not queue.pending

    def test_dispatches_extraction_for_classified_pages(self, pipeline, started, queue):
        lot, page_ids = started(3)
        classify_all(pipeline, page_ids[:2])
        fail(pipeline, page_ids[2:])

        decision = pipeline.controller.check_classification_complete(lot.lot_id)

        assert decision is StageDecision.DISPATCHED_EXTRACTION
        assert lot_status(pipeline, lot.lot_id) is LotStatus.EXTRACTING
        (job,) = queue.payloads(EXTRACTION_QUEUE)
        assert isinstance(job, ExtractionJob)
        assert set(job.page_ids) == set(page_ids[:2])

    def test_repeated_check_is_a_no_op(self, pipeline, started, queue):
        lot, page_ids = started(2)
        classify_all(pipeline, page_ids)
        pipeline.controller.check_classification_complete(lot.lot_id)

        assert pipeline.controller.check_classification_complete(lot.lot_id) is StageDecision.NONE
        assert len(queue.payloads(EXTRACTION_QUEUE)) == 1

    def test_all_failed_fails_the_lot(self, pipeline, started, queue):
        lot, page_ids = started(2)
        fail(pipeline, page_ids)

        assert pipeline.controller.check_classification_complete(lot.lot_id) is StageDecision.FAILED
        stored = pipeline.lot_repository.get_lot_by_id(lot.lot_id)
        assert stored.status is LotStatus.FAILED
        assert set(stored.failed_page_ids) == set(page_ids)
        assert stored.processed_page_ids == ()
        assert queue.payloads() == []

    def test_many_classified_pages_use_bulk_extraction(self, pipeline, started, queue):
        lot, page_ids = started(6)
        classify_all(pipeline, page_ids)

        pipeline.controller.check_stage_complete(lot.lot_id, Stage.CLASSIFICATION)

        assert queue.payloads(BATCH_QUEUE) == [BatchSubmitJob(lot.lot_id, Stage.EXTRACTION)]


class TestExtractionCheck:
    @pytest.fixture
    def extracting(self, pipeline, started, queue):
        lot, page_ids = started(3)
        classify_all(pipeline, page_ids)
        pipeline.controller.check_classification_complete(lot.lot_id)
        queue.pending.clear()
        return lot, page_ids

    def test_ignored_outside_extracting(self, pipeline, started):
        lot, _ = started(1)

        assert pipeline.controller.check_extraction_complete(lot.lot_id) is StageDecision.NONE

    def test_waits_for_classified_pages(self, pipeline, extracting):
        lot, page_ids = extracting
        extract_all(pipeline, page_ids[:2])

        assert pipeline.controller.check_extraction_complete(lot.lot_id) is StageDecision.NONE

    def test_completed_when_every_page_extracted(self, pipeline, extracting):
        lot, page_ids = extracting
        extract_all(pipeline, page_ids)

        assert pipeline.controller.check_extraction_complete(lot.lot_id) is StageDecision.COMPLETED
        stored = pipeline.lot_repository.get_lot_by_id(lot.lot_id)
        assert stored.status is LotStatus.COMPLETED
        assert set(stored.processed_page_ids) == set(page_ids)

    def test_partial_failure_when_some_failed(self, pipeline, extracting):
        lot, page_ids = extracting
        extract_all(pipeline, page_ids[:2])
        fail(pipeline, page_ids[2:])

        assert pipeline.controller.check_extraction_complete(lot.lot_id) is StageDecision.PARTIAL_FAILURE
        stored = pipeline.lot_repository.get_lot_by_id(lot.lot_id)
        assert stored.failed_page_ids == (page_ids[2],)

    def test_partial_failure_when_nothing_extracted(self, pipeline, extracting):
        lot, page_ids = extracting
        fail(pipeline, page_ids)

        assert pipeline.controller.check_stage_complete(lot.lot_id, Stage.EXTRACTION) is StageDecision.PARTIAL_FAILURE
        stored = pipeline.lot_repository.get_lot_by_id(lot.lot_id)
        assert stored.status is LotStatus.PARTIAL_FAILURE
        assert set(stored.failed_page_ids) == set(page_ids)

    def test_terminal_status_is_written_once(self, pipeline, extracting):
        lot, page_ids = extracting
        extract_all(pipeline, page_ids)
        pipeline.controller.check_extraction_complete(lot.lot_id)
        first = pipeline.lot_repository.get_lot_by_id(lot.lot_id)

        assert pipeline.controller.check_extraction_complete(lot.lot_id) is StageDecision.NONE
        assert pipeline.lot_repository.get_lot_by_id(lot.lot_id).updated_at == first.updated_at

    def test_concurrent_checks_finish_lot_once(self, pipeline, extracting):
        lot, page_ids = extracting
        extract_all(pipeline, page_ids)

        decisions = run_concurrently(6, lambda: pipeline.controller.check_stage_complete(lot.lot_id, Stage.EXTRACTION))

        assert decisions.count(StageDecision.COMPLETED) == 1
        assert decisions.count(StageDecision.NONE) == 5

    def test_lock_dropped_after_terminal_write(self, pipeline, extracting):
        lot, page_ids = extracting
        extract_all(pipeline, page_ids)
        assert lot.lot_id in pipeline.controller._locks

        pipeline.controller.check_extraction_complete(lot.lot_id)

        assert lot.lot_id not in pipeline.controller._locks
        assert pipeline.controller.check_extraction_complete(lot.lot_id) is StageDecision.NONE
