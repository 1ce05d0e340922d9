"""End-to-end lot processing through the job queues with a scripted model."""
from unittest.mock import patch

import pytest

from fakes import ManualJobQueue, is_classification_prompt, seed_pages
from lotflow.application.ports import BulkState
from lotflow.application.services.pipeline_controller import StageDecision
from lotflow.bootstrap import build_pipeline
from lotflow.constants import BATCH_QUEUE, CLASSIFICATION_QUEUE, EXTRACTION_QUEUE, POLL_TIMEOUT_STATE
from lotflow.domain.value_objects.lot_status import LotStatus
from lotflow.domain.value_objects.page_status import PageStatus
from lotflow.domain.value_objects.stage import Stage
from lotflow.infrastructure.inference import InferenceGatewayError

STATUS_ORDER = [
    LotStatus.UPLOADING,
    LotStatus.CLASSIFYING,
    LotStatus.EXTRACTING,
    LotStatus.COMPLETED,
]


def rank(status):
    return STATUS_ORDER.index(status) if status in STATUS_ORDER else len(STATUS_ORDER)


def run_lot(pipeline, queue, lot_id, max_jobs=500):
    """Run queued jobs one by one, checking lot/page invariants after each."""
    lots = pipeline.lot_repository
    pages = pipeline.page_repository
    previous = lots.get_lot_by_id(lot_id).status
    ran = 0
    while queue.pending:
        assert ran < max_jobs, "queue did not drain"
        queue.run_next()
        ran += 1

        lot = lots.get_lot_by_id(lot_id)
        counts = pages.get_page_counts_by_status(lot_id)
        assert counts.pending + counts.classified + counts.extracted + counts.failed == lot.total_pages
        if lot.status is LotStatus.EXTRACTING:
            assert counts.pending == 0
        assert rank(lot.status) >= rank(previous)
        if previous.is_terminal():
            assert lot.status is previous
        previous = lot.status
    return lots.get_lot_by_id(lot_id)


def pages_of(pipeline, lot_id):
    return {page.page_id: page for page in pipeline.page_repository.get_pages_by_lot_id(lot_id)}


def assert_settled(pipeline, lot_id):
    assert pipeline.controller.check_classification_complete(lot_id) is StageDecision.NONE
    assert pipeline.controller.check_extraction_complete(lot_id) is StageDecision.NONE


class TestImmediatePath:
    def test_small_lot_completes(self, pipeline, gateway, queue, seed_lot):
        lot, page_ids = seed_lot(4)
        gateway.categories[page_ids[0]] = "handwritten"

        pipeline.controller.start_lot(lot.lot_id)
        final = run_lot(pipeline, queue, lot.lot_id)

        assert final.status is LotStatus.COMPLETED
        assert set(final.processed_page_ids) == set(page_ids)
        assert final.failed_page_ids == ()
        pages = pages_of(pipeline, lot.lot_id)
        assert {page.status for page in pages.values()} == {PageStatus.EXTRACTED}
        extraction_models = {
            page_id: call["model"]
            for call in gateway.generate_calls
            if "classification system" not in call["prompt"]
            for page_id in call["page_ids"]
        }
        assert extraction_models[page_ids[0]] == "model-high"
        assert extraction_models[page_ids[1]] == "model-low"
        assert gateway.bulk_jobs == {}
        assert_settled(pipeline, lot.lot_id)

    def test_unparseable_page_gives_partial_failure(self, pipeline, gateway, queue, seed_lot):
        lot, page_ids = seed_lot(4)
        gateway.malformed.add(page_ids[3])

        pipeline.controller.start_lot(lot.lot_id)
        final = run_lot(pipeline, queue, lot.lot_id)

        assert final.status is LotStatus.PARTIAL_FAILURE
        assert final.failed_page_ids == (page_ids[3],)
        assert set(final.processed_page_ids) == set(page_ids[:3])
        failed = pages_of(pipeline, lot.lot_id)[page_ids[3]]
        assert failed.error_message.startswith("Classification response rejected")

    def test_all_classification_failures_fail_lot(self, pipeline, gateway, queue, seed_lot):
        lot, page_ids = seed_lot(3)
        gateway.malformed.update(page_ids)

        pipeline.controller.start_lot(lot.lot_id)
        final = run_lot(pipeline, queue, lot.lot_id)

        assert final.status is LotStatus.FAILED
        assert set(final.failed_page_ids) == set(page_ids)
        assert all("classification system" in call["prompt"] for call in gateway.generate_calls)

    def test_mixed_readability_extracts_only_classified_pages(self, pipeline, gateway, queue, seed_lot):
        lot, page_ids = seed_lot(5)
        gateway.malformed.update(page_ids[2:])

        pipeline.controller.start_lot(lot.lot_id)
        final = run_lot(pipeline, queue, lot.lot_id)

        assert final.status is LotStatus.PARTIAL_FAILURE
        assert set(final.processed_page_ids) == set(page_ids[:2])
        assert set(final.failed_page_ids) == set(page_ids[2:])
        extracted = [
            page_id
            for call in gateway.generate_calls
            if not is_classification_prompt(call["prompt"])
            for page_id in call["page_ids"]
        ]
        assert sorted(extracted) == sorted(page_ids[:2])
        assert_settled(pipeline, lot.lot_id)

    def test_unreadable_extractions_give_partial_failure(self, pipeline, gateway, queue, seed_lot, monkeypatch):
        lot, page_ids = seed_lot(3)
        scripted_answer = gateway.answer

        def answer(items, prompt):
            if is_classification_prompt(prompt):
                return scripted_answer(items, prompt)
            return "Nothing legible on this page."

        monkeypatch.setattr(gateway, "answer", answer)

        pipeline.controller.start_lot(lot.lot_id)
        final = run_lot(pipeline, queue, lot.lot_id)

        assert final.status is LotStatus.PARTIAL_FAILURE
        assert final.processed_page_ids == ()
        assert set(final.failed_page_ids) == set(page_ids)
        pages = pages_of(pipeline, lot.lot_id)
        assert all(page.error_message.startswith("Extraction response rejected") for page in pages.values())

    def test_transient_errors_are_retried(self, pipeline, gateway, queue, seed_lot):
        lot, _ = seed_lot(2)
        gateway.raise_on_generate.append(InferenceGatewayError("429"))

        pipeline.controller.start_lot(lot.lot_id)
        final = run_lot(pipeline, queue, lot.lot_id)

        assert final.status is LotStatus.COMPLETED


class TestBulkPath:
    def test_large_lot_completes_through_bulk_jobs(self, pipeline, gateway, queue, seed_lot):
        lot, page_ids = seed_lot(7)
        gateway.bulk_states["bulk-1"] = [BulkState.RUNNING, BulkState.SUCCEEDED]

        pipeline.controller.start_lot(lot.lot_id)
        final = run_lot(pipeline, queue, lot.lot_id)

        assert final.status is LotStatus.COMPLETED
        assert set(final.processed_page_ids) == set(page_ids)
        assert gateway.generate_calls == []
        assert gateway.bulk_jobs["bulk-1"]["polls"] == 2
        assert sorted(len(job["items"]) for job in gateway.bulk_jobs.values()) == [3, 3, 4, 4]
        assert [job.delay_seconds for job in queue.history if job.job_name == "batch-poll"] == [30] * 5
        assert_settled(pipeline, lot.lot_id)

    def test_failed_bulk_extraction_job_gives_partial_failure(self, pipeline, gateway, queue, seed_lot):
        lot, _ = seed_lot(7)
        gateway.bulk_states["bulk-4"] = [BulkState.FAILED]

        pipeline.controller.start_lot(lot.lot_id)
        final = run_lot(pipeline, queue, lot.lot_id)

        assert final.status is LotStatus.PARTIAL_FAILURE
        assert len(final.failed_page_ids) == 3
        assert len(final.processed_page_ids) == 4

    def test_poll_timeout_fails_its_pages(self, pipeline, gateway, queue, seed_lot):
        lot, page_ids = seed_lot(7)
        gateway.bulk_states["bulk-1"] = [BulkState.RUNNING]

        pipeline.controller.start_lot(lot.lot_id)
        final = run_lot(pipeline, queue, lot.lot_id)

        assert final.status is LotStatus.PARTIAL_FAILURE
        assert gateway.bulk_jobs["bulk-1"]["polls"] == 3
        pages = pages_of(pipeline, lot.lot_id)
        assert all(POLL_TIMEOUT_STATE in pages[page_id].error_message for page_id in page_ids[:4])
        assert {pages[page_id].status for page_id in page_ids[4:]} == {PageStatus.EXTRACTED}
        # only three pages remain after classification, so extraction runs immediately
        assert len(gateway.generate_calls) == 2

    def test_cancelled_bulk_extraction_job_gives_partial_failure(self, pipeline, gateway, queue, seed_lot):
        lot, _ = seed_lot(7)
        gateway.bulk_states["bulk-4"] = [BulkState.CANCELLED]

        pipeline.controller.start_lot(lot.lot_id)
        final = run_lot(pipeline, queue, lot.lot_id)

        assert final.status is LotStatus.PARTIAL_FAILURE
        assert len(final.failed_page_ids) == 3
        pages = pages_of(pipeline, lot.lot_id)
        for page_id in final.failed_page_ids:
            assert pages[page_id].error_message == "Bulk job bulk-4 ended in state cancelled"
        assert {pages[page_id].status for page_id in final.processed_page_ids} == {PageStatus.EXTRACTED}
        assert_settled(pipeline, lot.lot_id)


class TestSingleBulkChunk:
    @pytest.fixture
    def single_chunk(self, settings, gateway):
        queue = ManualJobQueue(attempts={CLASSIFICATION_QUEUE: 2, EXTRACTION_QUEUE: 2, BATCH_QUEUE: 2})
        pipeline = build_pipeline(settings.model_copy(update={"batch_chunk_size": 10}), gateway=gateway, queue=queue)
        return pipeline, queue

    def test_one_chunk_per_stage_is_reconciled_in_one_pass(self, single_chunk, gateway):
        pipeline, queue = single_chunk
        lot, page_ids = seed_pages(pipeline, 6)
        gateway.bulk_states["bulk-1"] = [BulkState.RUNNING, BulkState.RUNNING, BulkState.SUCCEEDED]
        controller = pipeline.controller
        check = controller.check_stage_complete
        decisions = []

        def recording_check(lot_id, stage):
            decision = check(lot_id, stage)
            decisions.append((stage, decision))
            return decision

        with patch.object(controller, "check_stage_complete", side_effect=recording_check):
            controller.start_lot(lot.lot_id)
            final = run_lot(pipeline, queue, lot.lot_id)

        assert final.status is LotStatus.COMPLETED
        assert set(final.processed_page_ids) == set(page_ids)
        assert sorted(gateway.bulk_jobs) == ["bulk-1", "bulk-2"]
        assert len(gateway.bulk_jobs["bulk-1"]["items"]) == 6
        assert gateway.bulk_jobs["bulk-1"]["polls"] == 3
        assert len(gateway.bulk_jobs["bulk-2"]["items"]) == 6
        assert gateway.generate_calls == []
        assert decisions == [
            (Stage.CLASSIFICATION, StageDecision.DISPATCHED_EXTRACTION),
            (Stage.EXTRACTION, StageDecision.COMPLETED),
        ]
