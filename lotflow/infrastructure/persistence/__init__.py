"""File-backed persistence adapters."""

from .file_lot_repository import FileLotRepository
from .file_page_repository import FilePageRepository

__all__ = ["FileLotRepository", "FilePageRepository"]
