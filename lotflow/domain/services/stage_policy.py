"""
Stage-boundary rules for lots.

Pure functions of aggregate page counts: they decide whether a stage has
settled and what the lot becomes next. ``None`` means the stage is still
running.
"""
from __future__ import annotations

from typing import Optional

from lotflow.domain.value_objects.lot_status import LotStatus
from lotflow.domain.value_objects.page_counts import PageCounts


def classification_outcome(counts: PageCounts) -> Optional[LotStatus]:
    """EXTRACTING when some page classified, FAILED when none did."""
    if not counts.classification_settled():
        return None
    if counts.classified > 0:
        return LotStatus.EXTRACTING
    return LotStatus.FAILED


def extraction_outcome(counts: PageCounts) -> Optional[LotStatus]:
    """COMPLETED without failures, else PARTIAL_FAILURE."""
    if not counts.extraction_settled():
        return None
    if counts.failed == 0:
        return LotStatus.COMPLETED
    return LotStatus.PARTIAL_FAILURE
