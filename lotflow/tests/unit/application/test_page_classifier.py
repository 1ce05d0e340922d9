"""Unit tests for PageClassifier."""
from unittest.mock import Mock

import pytest

from fakes import classification_answer
from lotflow.application.services.page_classifier import PageClassifier
from lotflow.application.services.page_stage import PageStageSupport
from lotflow.domain.exceptions import RepositoryError
from lotflow.domain.services.model_router import ModelRouter
from lotflow.domain.value_objects.classification import PageCategory
from lotflow.domain.value_objects.page_status import PageStatus
from lotflow.infrastructure.inference import InferenceGatewayError
from lotflow.infrastructure.persistence import FilePageRepository


def answer_by_labels(categories):
    def _generate(model, items, prompt):
        return classification_answer([item.item_id for item in items], categories)

    return _generate


@pytest.fixture
def gateway():
    gateway = Mock()
    gateway.generate.side_effect = answer_by_labels({})
    return gateway


@pytest.fixture
def support(pipeline):
    return PageStageSupport(pipeline.page_repository, pipeline.object_store, ModelRouter("model-high", "model-low"))


@pytest.fixture
def classifier(gateway, support):
    return PageClassifier(gateway, support, model="model-classify", request_size=2)


class TestPageClassifier:
    def test_classifies_and_routes_each_page(self, classifier, gateway, pipeline, seed_lot):
        lot, page_ids = seed_lot(3)
        gateway.generate.side_effect = answer_by_labels({page_ids[0]: "handwritten", page_ids[2]: "mixed"})

        results = classifier.classify(lot.lot_id, page_ids)

        assert [result.success for result in results] == [True, True, True]
        pages = {page.page_id: page for page in pipeline.page_repository.get_pages_by_ids(page_ids)}
        assert pages[page_ids[0]].classification is PageCategory.HANDWRITTEN
        assert pages[page_ids[0]].routed_model == "model-high"
        assert pages[page_ids[1]].routed_model == "model-low"
        assert pages[page_ids[2]].routed_model == "model-low"
        assert all(page.status is PageStatus.CLASSIFIED for page in pages.values())

    def test_requests_are_chunked(self, classifier, gateway, seed_lot):
        lot, page_ids = seed_lot(5)

        classifier.classify(lot.lot_id, page_ids)

        sizes = [len(call.args[1]) for call in gateway.generate.call_args_list]
        assert sizes == [2, 2, 1]
        assert all(call.args[0] == "model-classify" for call in gateway.generate.call_args_list)
        assert "exactly 2 objects" in gateway.generate.call_args_list[0].args[2]

    def test_malformed_answer_fails_only_its_chunk(self, classifier, gateway, pipeline, seed_lot):
        lot, page_ids = seed_lot(4)
        good = answer_by_labels({})

        def generate(model, items, prompt):
            if items[0].item_id == page_ids[0]:
                return "[]"
            return good(model, items, prompt)

        gateway.generate.side_effect = generate

        results = classifier.classify(lot.lot_id, page_ids)

        outcome = {result.page_id: result for result in results}
        assert not outcome[page_ids[0]].success
        assert "Expected 2 results" in outcome[page_ids[0]].error
        assert outcome[page_ids[2]].success
        counts = pipeline.page_repository.get_page_counts_by_status(lot.lot_id)
        assert (counts.failed, counts.classified) == (2, 2)

    def test_gateway_errors_propagate(self, classifier, gateway, pipeline, seed_lot):
        lot, page_ids = seed_lot(2)
        gateway.generate.side_effect = InferenceGatewayError("timeout")

        with pytest.raises(InferenceGatewayError):
            classifier.classify(lot.lot_id, page_ids)

        assert pipeline.page_repository.get_page_counts_by_status(lot.lot_id).pending == 2

    def test_only_pending_pages_are_sent(self, classifier, gateway, pipeline, seed_lot):
        lot, page_ids = seed_lot(3)
        pipeline.page_repository.update_page_status(page_ids[1], PageStatus.FAILED, "earlier")

        results = classifier.classify(lot.lot_id, page_ids)

        sent = [item.item_id for call in gateway.generate.call_args_list for item in call.args[1]]
        assert sent == [page_ids[0], page_ids[2]]
        assert {result.page_id for result in results} == {page_ids[0], page_ids[2]}

    def test_missing_image_fails_page(self, classifier, pipeline, seed_lot):
        lot, page_ids = seed_lot(2)
        (pipeline.object_store.root / "pages" / f"{page_ids[0]}.png").unlink()

        results = classifier.classify(lot.lot_id, page_ids)

        outcome = {result.page_id: result for result in results}
        assert not outcome[page_ids[0]].success
        assert "Failed to load page image" in outcome[page_ids[0]].error
        assert pipeline.page_repository.get_page(page_ids[0]).status is PageStatus.FAILED
        assert outcome[page_ids[1]].success

    def test_write_failure_is_isolated(self, gateway, pipeline, seed_lot, settings):
        lot, page_ids = seed_lot(2)
        broken_id = page_ids[0]

        class FlakyPageRepository(FilePageRepository):
            def update_page_classification(self, page_id, verdict):
                if page_id == broken_id:
                    raise RepositoryError("disk full")
                return super().update_page_classification(page_id, verdict)

        pages = FlakyPageRepository(settings.data_dir)
        support = PageStageSupport(pages, pipeline.object_store, ModelRouter("model-high", "model-low"))
        classifier = PageClassifier(gateway, support, model="model-classify", request_size=2)

        results = classifier.classify(lot.lot_id, page_ids)

        outcome = {result.page_id: result for result in results}
        assert "disk full" in outcome[broken_id].error
        assert pages.get_page(broken_id).status is PageStatus.FAILED
        assert pages.get_page(page_ids[1]).status is PageStatus.CLASSIFIED
