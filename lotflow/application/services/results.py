"""Per-page outcome reported by the stage services."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PageResult:
    page_id: str
    success: bool
    error: Optional[str] = None
