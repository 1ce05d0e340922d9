"""PageStatus value object: forward-only lifecycle of a page document."""
from __future__ import annotations

from enum import Enum


class PageStatus(str, Enum):
    PENDING = "pending"
    CLASSIFIED = "classified"
    EXTRACTED = "extracted"
    FAILED = "failed"

    @classmethod
    def from_string(cls, value: str) -> "PageStatus":
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(f"Invalid page status: {value!r}") from exc

    def can_transition_to(self, new_status: "PageStatus") -> bool:
        """pending → classified → extracted; failed from any non-terminal state."""
        if self.is_terminal():
            return False
        if new_status is PageStatus.FAILED:
            return True
        if self is PageStatus.PENDING:
            return new_status is PageStatus.CLASSIFIED
        if self is PageStatus.CLASSIFIED:
            return new_status is PageStatus.EXTRACTED
        return False

    def is_terminal(self) -> bool:
        return self in (PageStatus.EXTRACTED, PageStatus.FAILED)
