"""Aggregate page-status counts for a lot."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable


@dataclass(frozen=True)
class PageCounts:
    total: int = 0
    pending: int = 0
    classified: int = 0
    extracted: int = 0
    failed: int = 0

    @classmethod
    def from_statuses(cls, statuses: Iterable[str]) -> "PageCounts":
        tally: Dict[str, int] = {"pending": 0, "classified": 0, "extracted": 0, "failed": 0}
        total = 0
        for status in statuses:
            total += 1
            key = getattr(status, "value", status)
            if key in tally:
                tally[key] += 1
        return cls(total=total, **tally)

    def classification_settled(self) -> bool:
        return self.pending == 0 and self.classified + self.failed == self.total

    def extraction_settled(self) -> bool:
        return self.extracted + self.failed == self.total

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "pending": self.pending,
            "classified": self.classified,
            "extracted": self.extracted,
            "failed": self.failed,
        }
