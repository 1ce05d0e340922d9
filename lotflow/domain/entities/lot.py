"""
Lot Entity - one upload transaction.

The Lot is the aggregate root of the pipeline. It owns its source documents
and, transitively, their page documents. Its status is only ever derived from
the aggregate page counts once processing has started.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Iterable, Optional, Tuple

from lotflow.domain.exceptions import InvalidStatusTransitionError
from lotflow.domain.value_objects.lot_status import LotStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Lot:
    """Lot aggregate root (immutable; use the ``with_*`` methods)."""

    lot_id: str
    total_pages: int
    status: LotStatus
    processed_page_ids: Tuple[str, ...] = ()
    failed_page_ids: Tuple[str, ...] = ()
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if self.total_pages < 0:
            raise ValueError("total_pages must be >= 0")
        if not isinstance(self.status, LotStatus):
            object.__setattr__(self, "status", LotStatus.from_string(self.status))
        object.__setattr__(self, "processed_page_ids", tuple(self.processed_page_ids))
        object.__setattr__(self, "failed_page_ids", tuple(self.failed_page_ids))

    @classmethod
    def create(cls, total_pages: int, lot_id: Optional[str] = None) -> "Lot":
        """Create a new lot in ``uploading`` status."""
        now = _utcnow()
        return cls(
            lot_id=lot_id or uuid.uuid4().hex,
            total_pages=total_pages,
            status=LotStatus.UPLOADING,
            created_at=now,
            updated_at=now,
        )

    def transition_to(self, status: LotStatus) -> "Lot":
        """Return a copy in ``status``; raises if the state machine forbids it."""
        if not self.status.can_transition_to(status):
            raise InvalidStatusTransitionError("Lot", self.lot_id, self.status.value, status.value)
        return replace(self, status=status, updated_at=_utcnow())

    def with_page_outcomes(
        self,
        processed_page_ids: Iterable[str],
        failed_page_ids: Iterable[str],
    ) -> "Lot":
        return replace(
            self,
            processed_page_ids=tuple(processed_page_ids),
            failed_page_ids=tuple(failed_page_ids),
            updated_at=_utcnow(),
        )

    def is_terminal(self) -> bool:
        return self.status.is_terminal()

    def to_dict(self) -> dict:
        return {
            "lot_id": self.lot_id,
            "total_pages": self.total_pages,
            "status": self.status.value,
            "processed_page_ids": list(self.processed_page_ids),
            "failed_page_ids": list(self.failed_page_ids),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Lot":
        created_at = _parse_datetime(data.get("created_at"))
        return cls(
            lot_id=data["lot_id"],
            total_pages=int(data.get("total_pages") or 0),
            status=LotStatus.from_string(data.get("status", LotStatus.UPLOADING.value)),
            processed_page_ids=tuple(data.get("processed_page_ids") or ()),
            failed_page_ids=tuple(data.get("failed_page_ids") or ()),
            created_at=created_at,
            updated_at=_parse_datetime(data.get("updated_at")) if data.get("updated_at") else created_at,
        )


def _parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return _utcnow()
