"""Typed queue payloads."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from lotflow.domain.value_objects.stage import Stage


@dataclass(frozen=True)
class ClassificationJob:
    lot_id: str
    page_ids: Tuple[str, ...]


@dataclass(frozen=True)
class ExtractionJob:
    lot_id: str
    page_ids: Tuple[str, ...]


@dataclass(frozen=True)
class BatchSubmitJob:
    lot_id: str
    stage: Stage


@dataclass(frozen=True)
class BatchPollJob:
    job_handle: str
    lot_id: str
    stage: Stage
    page_ids: Tuple[str, ...]
    poll_count: int = 0

    def next_poll(self) -> "BatchPollJob":
        return BatchPollJob(
            job_handle=self.job_handle,
            lot_id=self.lot_id,
            stage=self.stage,
            page_ids=self.page_ids,
            poll_count=self.poll_count + 1,
        )
