"""Inference adapter errors."""
from __future__ import annotations


class InferenceGatewayError(RuntimeError):
    """Transport or provider failure; the job is retried by the queue."""


class ModelResponseError(ValueError):
    """The model answered but its output cannot be used for the chunk."""
