"""Blob storage adapters."""

from .file_object_store import FileObjectStore

__all__ = ["FileObjectStore"]
