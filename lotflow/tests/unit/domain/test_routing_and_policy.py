"""Unit tests for model routing and stage-boundary rules."""
import pytest

from lotflow.domain.services.model_router import ModelRouter
from lotflow.domain.services.stage_policy import classification_outcome, extraction_outcome
from lotflow.domain.value_objects.classification import PageCategory
from lotflow.domain.value_objects.lot_status import LotStatus
from lotflow.domain.value_objects.page_counts import PageCounts
from lotflow.domain.value_objects.page_status import PageStatus


class TestModelRouter:
    def test_handwritten_goes_to_high_capability(self):
        router = ModelRouter("high", "low")
        assert router.route(PageCategory.HANDWRITTEN) == "high"

    def test_typed_goes_to_low_cost(self):
        router = ModelRouter("high", "low")
        assert router.route("typed") == "low"

    def test_mixed_defaults_to_low_cost(self):
        router = ModelRouter("high", "low")
        assert router.route(PageCategory.MIXED) == "low"

    def test_mixed_can_be_routed_to_high_capability(self):
        router = ModelRouter("high", "low", route_mixed_to_high_capability=True)
        assert router.route(PageCategory.MIXED) == "high"

    def test_unknown_category_rejected(self):
        with pytest.raises(ValueError):
            ModelRouter("high", "low").route("printed")


def counts(**values) -> PageCounts:
    statuses = []
    for status, amount in values.items():
        statuses.extend([PageStatus(status)] * amount)
    return PageCounts.from_statuses(statuses)


class TestPageCounts:
    def test_from_statuses_tallies_each_status(self):
        tally = counts(pending=1, classified=2, extracted=3, failed=4)

        assert tally.to_dict() == {"total": 10, "pending": 1, "classified": 2, "extracted": 3, "failed": 4}


class TestClassificationOutcome:
    def test_waits_while_pages_pending(self):
        assert classification_outcome(counts(pending=1, classified=3)) is None

    def test_moves_to_extraction_when_any_page_classified(self):
        assert classification_outcome(counts(classified=1, failed=4)) is LotStatus.EXTRACTING

    def test_fails_when_every_page_failed(self):
        assert classification_outcome(counts(failed=3)) is LotStatus.FAILED


class TestExtractionOutcome:
    def test_waits_while_pages_classified(self):
        assert extraction_outcome(counts(classified=1, extracted=2)) is None

    def test_completed_without_failures(self):
        assert extraction_outcome(counts(extracted=3)) is LotStatus.COMPLETED

    def test_partial_failure_with_some_failures(self):
        assert extraction_outcome(counts(extracted=2, failed=1)) is LotStatus.PARTIAL_FAILURE

    def test_partial_failure_when_nothing_extracted(self):
        assert extraction_outcome(counts(failed=2)) is LotStatus.PARTIAL_FAILURE
