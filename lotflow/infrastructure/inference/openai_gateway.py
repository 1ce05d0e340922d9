"""OpenAI / Azure OpenAI adapter for the inference gateway.

Immediate requests go through chat completions. Bulk jobs use the Files and
Batches APIs: one JSONL line per page with ``custom_id`` set to the page id.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from azure.identity import DefaultAzureCredential, get_bearer_token_provider
from openai import APIError, AzureOpenAI, OpenAI

from lotflow.application.ports import BulkItemResponse, BulkJobState, BulkState, InferenceItem
from lotflow.config import Settings, get_settings

from .errors import InferenceGatewayError
from .prompt_builder import build_messages

logger = logging.getLogger(__name__)

MAX_COMPLETION_TOKENS = 16384
COMPLETION_WINDOW = "24h"

_BATCH_STATES: Dict[str, BulkState] = {
    "validating": BulkState.RUNNING,
    "in_progress": BulkState.RUNNING,
    "finalizing": BulkState.RUNNING,
    "cancelling": BulkState.RUNNING,
    "completed": BulkState.SUCCEEDED,
    "failed": BulkState.FAILED,
    "expired": BulkState.EXPIRED,
    "cancelled": BulkState.CANCELLED,
}


class OpenAIInferenceGateway:
    """Gateway backed by the ``openai`` SDK."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        client: Optional[OpenAI] = None,
    ) -> None:
        settings = settings or get_settings()
        self._azure = settings.uses_azure()

        if client is not None:
            self._client = client
        elif self._azure:
            endpoint = settings.ensure_endpoint()
            api_key = settings.azure_openai_api_key
            if api_key:
                self._client = AzureOpenAI(
                    api_key=api_key,
                    api_version=settings.azure_openai_api_version,
                    azure_endpoint=endpoint,
                )
            else:
                token_provider = get_bearer_token_provider(
                    DefaultAzureCredential(),
                    "https://cognitiveservices.azure.com/.default",
                )
                self._client = AzureOpenAI(
                    api_version=settings.azure_openai_api_version,
                    azure_endpoint=endpoint,
                    azure_ad_token_provider=token_provider,
                )
        else:
            if not settings.openai_api_key:
                raise RuntimeError("OPENAI_API_KEY or AZURE_OPENAI_ENDPOINT must be configured")
            self._client = OpenAI(api_key=settings.openai_api_key)

    @property
    def batch_endpoint(self) -> str:
        return "/chat/completions" if self._azure else "/v1/chat/completions"

    # ------------------------------------------------------------------
    # Immediate path
    # ------------------------------------------------------------------
    def generate(self, model: str, items: Sequence[InferenceItem], prompt: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=model,
                messages=build_messages(items, prompt),
                max_completion_tokens=MAX_COMPLETION_TOKENS,
            )
        except APIError as exc:
            raise InferenceGatewayError(f"Inference request to {model} failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        logger.debug("Model %s answered for %d item(s)", model, len(items))
        return content or ""

    # ------------------------------------------------------------------
    # Bulk path
    # ------------------------------------------------------------------
    def submit_bulk_job(self, model: str, items: Sequence[InferenceItem], prompt: str) -> str:
        if not items:
            raise ValueError("A bulk job needs at least one item")

        lines = [
            json.dumps(
                {
                    "custom_id": item.item_id,
                    "method": "POST",
                    "url": self.batch_endpoint,
                    "body": {
                        "model": model,
                        "messages": build_messages([item], prompt),
                        "max_completion_tokens": MAX_COMPLETION_TOKENS,
                    },
                }
            )
            for item in items
        ]
        payload = ("\n".join(lines) + "\n").encode("utf-8")

        try:
            uploaded = self._client.files.create(file=("requests.jsonl", payload), purpose="batch")
            batch = self._client.batches.create(
                input_file_id=uploaded.id,
                endpoint=self.batch_endpoint,
                completion_window=COMPLETION_WINDOW,
            )
        except APIError as exc:
            raise InferenceGatewayError(f"Bulk submission to {model} failed: {exc}") from exc

        logger.info(
            "Submitted bulk job %s (%d items, model=%s)",
            batch.id,
            len(items),
            model,
            extra={"job_handle": batch.id},
        )
        return batch.id

    def get_bulk_job_state(self, handle: str) -> BulkJobState:
        try:
            batch = self._client.batches.retrieve(handle)
        except APIError as exc:
            raise InferenceGatewayError(f"Polling bulk job {handle} failed: {exc}") from exc

        raw_state = str(batch.status)
        state = _BATCH_STATES.get(raw_state)
        if state is None:
            logger.warning("Unknown bulk job state %r for %s; treating as running", raw_state, handle)
            state = BulkState.RUNNING
        if state is not BulkState.SUCCEEDED:
            return BulkJobState(state=state, raw_state=raw_state)

        responses: List[BulkItemResponse] = []
        for file_id in (batch.output_file_id, batch.error_file_id):
            if file_id:
                responses.extend(self._read_results(file_id))
        return BulkJobState(state=state, raw_state=raw_state, responses=tuple(responses))

    def _read_results(self, file_id: str) -> List[BulkItemResponse]:
        try:
            text = self._client.files.content(file_id).text
        except APIError as exc:
            raise InferenceGatewayError(f"Reading bulk result file {file_id} failed: {exc}") from exc
        return [_parse_result_line(line) for line in text.splitlines() if line.strip()]


def _parse_result_line(line: str) -> BulkItemResponse:
    try:
        record: Dict[str, Any] = json.loads(line)
    except json.JSONDecodeError:
        return BulkItemResponse(item_id=None, error="Unreadable bulk result line")

    item_id = record.get("custom_id") or None
    if record.get("error"):
        error = record["error"]
        message = error.get("message") if isinstance(error, dict) else str(error)
        return BulkItemResponse(item_id=item_id, error=message or "Bulk item failed")

    response = record.get("response") or {}
    status_code = response.get("status_code")
    body = response.get("body") or {}
    if status_code is not None and int(status_code) >= 400:
        detail = body.get("error") if isinstance(body, dict) else None
        message = detail.get("message") if isinstance(detail, dict) else None
        return BulkItemResponse(item_id=item_id, error=message or f"HTTP {status_code}")

    choices = body.get("choices") if isinstance(body, dict) else None
    if not choices:
        return BulkItemResponse(item_id=item_id, error="Bulk item returned no choices")
    content = (choices[0].get("message") or {}).get("content")
    return BulkItemResponse(item_id=item_id, text=content or "")
