"""Domain services."""

from .model_router import ModelRouter
from .stage_policy import classification_outcome, extraction_outcome

__all__ = ["ModelRouter", "classification_outcome", "extraction_outcome"]
