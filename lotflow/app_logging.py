from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .config import Settings, get_settings

SERVICE_NAME = "lotflow"

# Extras that tie a record to pipeline work; grouped under "context" in JSON
# output and always present on text output.
CONTEXT_FIELDS = ("lot_id", "stage", "job_handle", "total_pages")

_RESERVED_ATTRS = set(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}


def _plain(value: Any) -> Any:
  if isinstance(value, Enum):
    return value.value
  if isinstance(value, (str, int, float, bool)) or value is None:
    return value
  return str(value)


class PipelineContextFilter(logging.Filter):
  """Gives every record the pipeline context attributes, ``None`` when unset."""

  def filter(self, record: logging.LogRecord) -> bool:
    for name in CONTEXT_FIELDS:
      if not hasattr(record, name):
        setattr(record, name, None)
    return True


class JsonFormatter(logging.Formatter):
  def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
    payload: dict[str, Any] = {
      "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
      "level": record.levelname,
      "service": SERVICE_NAME,
      "logger": record.name,
      "message": record.getMessage(),
    }
    context = {
      name: _plain(getattr(record, name))
      for name in CONTEXT_FIELDS
      if getattr(record, name, None) is not None
    }
    if context:
      payload["context"] = context
    if record.exc_info:
      payload["exc_info"] = self.formatException(record.exc_info)
    for key, value in record.__dict__.items():
      if key.startswith("_") or key in _RESERVED_ATTRS or key in CONTEXT_FIELDS or key in payload:
        continue
      if isinstance(value, (str, int, float, bool, Enum)) or value is None:
        payload[key] = _plain(value)
    return json.dumps(payload, ensure_ascii=False)


TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [lot=%(lot_id)s stage=%(stage)s]: %(message)s"


def configure_logging(settings: Settings | None = None) -> None:
  settings = settings or get_settings()
  root = logging.getLogger()
  for handler in list(root.handlers):
    root.removeHandler(handler)

  root.setLevel(settings.log_level.upper())
  stream_handler = logging.StreamHandler(sys.stdout)
  stream_handler.addFilter(PipelineContextFilter())
  if settings.log_format.lower() == "text":
    stream_handler.setFormatter(logging.Formatter(TEXT_FORMAT))
  else:
    stream_handler.setFormatter(JsonFormatter())
  root.addHandler(stream_handler)

  logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
  logging.getLogger("httpx").setLevel(logging.WARNING)
  # The openai client logs every Files/Batches request at INFO.
  logging.getLogger("openai").setLevel(logging.WARNING)
