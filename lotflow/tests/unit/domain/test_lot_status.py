"""
Unit tests for the Lot entity and LotStatus value object
"""
import pytest

from lotflow.domain.entities.lot import Lot
from lotflow.domain.exceptions import InvalidStatusTransitionError
from lotflow.domain.value_objects.lot_status import LotStatus


class TestLotStatusTransitions:
    """Lots move forward through the stages only."""

    @pytest.mark.parametrize(
        "current,new",
        [
            (LotStatus.UPLOADING, LotStatus.CLASSIFYING),
            (LotStatus.UPLOADING, LotStatus.FAILED),
            (LotStatus.CLASSIFYING, LotStatus.EXTRACTING),
            (LotStatus.CLASSIFYING, LotStatus.FAILED),
            (LotStatus.EXTRACTING, LotStatus.COMPLETED),
            (LotStatus.EXTRACTING, LotStatus.PARTIAL_FAILURE),
        ],
    )
    def test_allowed_transitions(self, current, new):
        assert current.can_transition_to(new)

    @pytest.mark.parametrize(
        "current,new",
        [
            (LotStatus.UPLOADING, LotStatus.EXTRACTING),
            (LotStatus.CLASSIFYING, LotStatus.COMPLETED),
            (LotStatus.EXTRACTING, LotStatus.CLASSIFYING),
            (LotStatus.EXTRACTING, LotStatus.FAILED),
            (LotStatus.COMPLETED, LotStatus.FAILED),
            (LotStatus.PARTIAL_FAILURE, LotStatus.COMPLETED),
        ],
    )
    def test_rejected_transitions(self, current, new):
        assert not current.can_transition_to(new)

    def test_terminal_statuses(self):
        assert {status for status in LotStatus if status.is_terminal()} == {
            LotStatus.COMPLETED,
            LotStatus.FAILED,
            LotStatus.PARTIAL_FAILURE,
        }
        assert not LotStatus.CLASSIFYING.is_terminal()

    def test_from_string_is_case_insensitive(self):
        assert LotStatus.from_string(" Partial_Failure ") is LotStatus.PARTIAL_FAILURE

    def test_from_string_rejects_unknown(self):
        with pytest.raises(ValueError):
            LotStatus.from_string("paused")


class TestLot:
    def test_create_starts_uploading(self):
        lot = Lot.create(total_pages=3)

        assert lot.status is LotStatus.UPLOADING
        assert lot.total_pages == 3
        assert lot.processed_page_ids == ()
        assert len(lot.lot_id) == 32

    def test_transition_to_returns_new_instance(self):
        lot = Lot.create(total_pages=1)

        moved = lot.transition_to(LotStatus.CLASSIFYING)

        assert moved.status is LotStatus.CLASSIFYING
        assert lot.status is LotStatus.UPLOADING

    def test_transition_to_rejects_skipping_stages(self):
        lot = Lot.create(total_pages=1)

        with pytest.raises(InvalidStatusTransitionError):
            lot.transition_to(LotStatus.COMPLETED)

    def test_snapshot_keeps_page_outcomes(self):
        lot = (
            Lot.create(total_pages=2, lot_id="lot-1")
            .transition_to(LotStatus.CLASSIFYING)
            .transition_to(LotStatus.EXTRACTING)
            .transition_to(LotStatus.PARTIAL_FAILURE)
            .with_page_outcomes(["p1"], ["p2"])
        )

        restored = Lot.from_dict(lot.to_dict())

        assert restored == lot
        assert restored.failed_page_ids == ("p2",)

    def test_negative_total_pages_rejected(self):
        with pytest.raises(ValueError):
            Lot.create(total_pages=-1)
