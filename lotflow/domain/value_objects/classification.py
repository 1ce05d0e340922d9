"""Page classification categories."""
from __future__ import annotations

from enum import Enum


class PageCategory(str, Enum):
    """Dominant form of text on a page."""
    HANDWRITTEN = "handwritten"
    TYPED = "typed"
    MIXED = "mixed"

    @classmethod
    def parse(cls, value: object) -> "PageCategory":
        if isinstance(value, PageCategory):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid classification: {value!r}")
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Invalid classification: {value!r}") from exc
