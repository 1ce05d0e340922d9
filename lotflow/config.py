from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from lotflow.constants import ROUTE_MIXED_TO_HIGH_CAPABILITY

# Ensure environment variables from the repository root .env are available
# regardless of the working directory used to start the process.
ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(ROOT_DIR / ".env")


class Settings(BaseSettings):
  model_config = SettingsConfigDict(case_sensitive=False, populate_by_name=True)

  openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
  azure_openai_api_key: str | None = Field(default=None, alias="AZURE_OPENAI_API_KEY")
  azure_openai_endpoint: str = Field(default="", alias="AZURE_OPENAI_ENDPOINT")
  azure_openai_api_version: str = Field(default="2024-12-01-preview", alias="AZURE_OPENAI_API_VERSION")

  high_capability_model: str = Field(default="gpt-4.1", alias="HIGH_CAPABILITY_MODEL")
  low_cost_model: str = Field(default="gpt-4.1-mini", alias="LOW_COST_MODEL")
  classification_model: str = Field(default="gpt-4.1-mini", alias="CLASSIFICATION_MODEL")
  route_mixed_to_high_capability: bool = Field(
    default=ROUTE_MIXED_TO_HIGH_CAPABILITY, alias="ROUTE_MIXED_TO_HIGH_CAPABILITY"
  )

  batch_api_threshold: int = Field(default=40, alias="BATCH_API_THRESHOLD")
  batch_chunk_size: int = Field(default=100, alias="BATCH_CHUNK_SIZE")
  batch_poll_delay_seconds: float = Field(default=30.0, alias="BATCH_POLL_DELAY_SECONDS")
  batch_poll_max_attempts: int = Field(default=2880, alias="BATCH_POLL_MAX_ATTEMPTS")

  job_sub_batch_size: int = Field(default=25, alias="JOB_SUB_BATCH_SIZE")
  classification_request_size: int = Field(default=10, alias="CLASSIFICATION_REQUEST_SIZE")
  extraction_request_size: int = Field(default=5, alias="EXTRACTION_REQUEST_SIZE")

  page_worker_concurrency: int = Field(default=2, alias="PAGE_WORKER_CONCURRENCY")
  page_job_attempts: int = Field(default=5, alias="PAGE_JOB_ATTEMPTS")
  page_rate_limit_max: int = Field(default=10, alias="PAGE_RATE_LIMIT_MAX")
  page_rate_limit_window_seconds: float = Field(default=60.0, alias="PAGE_RATE_LIMIT_WINDOW_SECONDS")
  batch_worker_concurrency: int = Field(default=3, alias="BATCH_WORKER_CONCURRENCY")
  batch_job_attempts: int = Field(default=3, alias="BATCH_JOB_ATTEMPTS")
  job_backoff_seconds: float = Field(default=60.0, alias="JOB_BACKOFF_SECONDS")
  job_lock_seconds: float = Field(default=300.0, alias="JOB_LOCK_SECONDS")

  data_dir: str = Field(default="lotflow_data", alias="DATA_DIR")
  render_zoom: float = Field(default=2.0, alias="RENDER_ZOOM")
  max_upload_files: int = Field(default=50, alias="MAX_UPLOAD_FILES")

  log_level: str = Field(default="INFO", alias="LOG_LEVEL")
  log_format: str = Field(default="json", alias="LOG_FORMAT")

  def ensure_endpoint(self) -> str:
    endpoint = (self.azure_openai_endpoint or "").strip()
    if not endpoint:
        return ""
    return endpoint.rstrip("/") + "/"

  def uses_azure(self) -> bool:
    return bool(self.ensure_endpoint())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  return Settings()  # type: ignore[arg-type]
