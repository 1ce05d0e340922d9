"""SourceDocument entity - an original uploaded file."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from lotflow.domain.entities.lot import _parse_datetime


@dataclass(frozen=True)
class SourceDocument:
    """Immutable record of one uploaded PDF within a lot."""

    source_id: str
    lot_id: str
    filename: str
    content_hash: str
    storage_locator: str
    page_count: int
    file_size: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if self.page_count < 0:
            raise ValueError("page_count must be >= 0")

    @classmethod
    def create(
        cls,
        lot_id: str,
        filename: str,
        content_hash: str,
        storage_locator: str,
        page_count: int,
        file_size: int = 0,
        source_id: Optional[str] = None,
    ) -> "SourceDocument":
        return cls(
            source_id=source_id or uuid.uuid4().hex,
            lot_id=lot_id,
            filename=filename,
            content_hash=content_hash,
            storage_locator=storage_locator,
            page_count=page_count,
            file_size=file_size,
        )

    def to_dict(self) -> dict:
        return {
            "source_id": self.source_id,
            "lot_id": self.lot_id,
            "filename": self.filename,
            "content_hash": self.content_hash,
            "storage_locator": self.storage_locator,
            "page_count": self.page_count,
            "file_size": self.file_size,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SourceDocument":
        return cls(
            source_id=data["source_id"],
            lot_id=data["lot_id"],
            filename=data.get("filename", ""),
            content_hash=data.get("content_hash", ""),
            storage_locator=data.get("storage_locator", ""),
            page_count=int(data.get("page_count") or 0),
            file_size=int(data.get("file_size") or 0),
            created_at=_parse_datetime(data.get("created_at")),
        )
