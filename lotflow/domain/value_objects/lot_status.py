"""
LotStatus value object

Status of an upload lot. Lots move strictly forward through the pipeline
stages and end in exactly one terminal status.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet


class LotStatus(str, Enum):
    """Valid lot states."""
    UPLOADING = "uploading"
    CLASSIFYING = "classifying"
    EXTRACTING = "extracting"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL_FAILURE = "partial_failure"

    @classmethod
    def from_string(cls, value: str) -> "LotStatus":
        """Parse a persisted status string (case-insensitive)."""
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(f"Invalid lot status: {value!r}") from exc

    def can_transition_to(self, new_status: "LotStatus") -> bool:
        """
        Check if transition to new status is valid.

        Valid transitions:
        - UPLOADING → CLASSIFYING, FAILED (lot without pages)
        - CLASSIFYING → EXTRACTING, FAILED
        - EXTRACTING → COMPLETED, PARTIAL_FAILURE, FAILED
        - COMPLETED, FAILED, PARTIAL_FAILURE → (none - terminal)
        """
        return new_status in _TRANSITIONS[self]

    def is_terminal(self) -> bool:
        """Check if this is a terminal status."""
        return self in TERMINAL_LOT_STATUSES


TERMINAL_LOT_STATUSES: FrozenSet[LotStatus] = frozenset(
    {LotStatus.COMPLETED, LotStatus.FAILED, LotStatus.PARTIAL_FAILURE}
)

_TRANSITIONS: Dict[LotStatus, FrozenSet[LotStatus]] = {
    LotStatus.UPLOADING: frozenset({LotStatus.CLASSIFYING, LotStatus.FAILED}),
    LotStatus.CLASSIFYING: frozenset({LotStatus.EXTRACTING, LotStatus.FAILED}),
    LotStatus.EXTRACTING: frozenset({LotStatus.COMPLETED, LotStatus.PARTIAL_FAILURE}),
    LotStatus.COMPLETED: frozenset(),
    LotStatus.FAILED: frozenset(),
    LotStatus.PARTIAL_FAILURE: frozenset(),
}
