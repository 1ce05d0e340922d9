"""Collaborator contracts used by the application layer.

The pipeline services only depend on these protocols; bootstrap wires the
file-backed and OpenAI-backed adapters, and tests wire scripted fakes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Sequence, Tuple


@dataclass(frozen=True)
class InferenceItem:
    """One labelled image sent to the model."""

    item_id: str
    image_bytes: bytes
    mime_type: str = "image/png"


class BulkState(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not BulkState.RUNNING


@dataclass(frozen=True)
class BulkItemResponse:
    """Per-item outcome of a bulk job; ``item_id`` is ``None`` when the provider omitted it."""

    item_id: Optional[str]
    text: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class BulkJobState:
    state: BulkState
    raw_state: str
    responses: Tuple[BulkItemResponse, ...] = field(default_factory=tuple)


class InferenceGateway(Protocol):
    def generate(self, model: str, items: Sequence[InferenceItem], prompt: str) -> str:
        ...

    def submit_bulk_job(self, model: str, items: Sequence[InferenceItem], prompt: str) -> str:
        ...

    def get_bulk_job_state(self, handle: str) -> BulkJobState:
        ...


class ObjectStore(Protocol):
    def put_source_document(self, lot_id: str, content_hash: str, data: bytes) -> str:
        ...

    def put_page_image(self, page_id: str, data: bytes) -> str:
        ...

    def get_page_image_bytes(self, page_id: str) -> bytes:
        ...


JobHandler = Callable[[Any], Any]


class JobQueue(Protocol):
    def register(self, queue_name: str, handler: JobHandler) -> None:
        ...

    def enqueue(self, queue_name: str, job_name: str, payload: Any, delay_seconds: float = 0) -> None:
        ...

    def on_completed(self, queue_name: str, callback: Callable[[Any, Any], None]) -> None:
        ...

    def on_failed(self, queue_name: str, callback: Callable[[Any, BaseException], None]) -> None:
        ...
