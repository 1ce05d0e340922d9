"""Domain repository interfaces."""

from .lot_repository import LotRepository
from .page_repository import PageRepository

__all__ = ["LotRepository", "PageRepository"]
