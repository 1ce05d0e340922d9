"""API v1 routers package."""

from . import lots, uploads

__all__ = [
    "lots",
    "uploads",
]
