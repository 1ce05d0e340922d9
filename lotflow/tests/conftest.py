"""Pytest configuration for lotflow tests.

Ensures the project root is on sys.path so ``lotflow.*`` imports resolve, and
provides a pipeline wired to file-backed stores in a temporary directory with
the deterministic queue and gateway from ``fakes``.
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Tuple

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from lotflow.bootstrap import Pipeline, build_pipeline  # noqa: E402
from lotflow.config import Settings  # noqa: E402
from lotflow.constants import BATCH_QUEUE, CLASSIFICATION_QUEUE, EXTRACTION_QUEUE  # noqa: E402
from lotflow.domain.entities.lot import Lot  # noqa: E402

from fakes import ManualJobQueue, ScriptedGateway, seed_pages  # noqa: E402

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        OPENAI_API_KEY="test-key",
        AZURE_OPENAI_ENDPOINT="",
        DATA_DIR=str(tmp_path / "data"),
        BATCH_API_THRESHOLD=5,
        BATCH_CHUNK_SIZE=4,
        BATCH_POLL_DELAY_SECONDS=30,
        BATCH_POLL_MAX_ATTEMPTS=3,
        JOB_SUB_BATCH_SIZE=3,
        CLASSIFICATION_REQUEST_SIZE=2,
        EXTRACTION_REQUEST_SIZE=2,
        HIGH_CAPABILITY_MODEL="model-high",
        LOW_COST_MODEL="model-low",
        CLASSIFICATION_MODEL="model-classify",
        ROUTE_MIXED_TO_HIGH_CAPABILITY=False,
        RENDER_ZOOM=1.0,
    )


@pytest.fixture
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


@pytest.fixture
def queue() -> ManualJobQueue:
    return ManualJobQueue(attempts={CLASSIFICATION_QUEUE: 2, EXTRACTION_QUEUE: 2, BATCH_QUEUE: 2})


@pytest.fixture
def pipeline(settings, gateway, queue) -> Pipeline:
    return build_pipeline(settings, gateway=gateway, queue=queue)


@pytest.fixture
def seed_lot(pipeline):
    """Create a lot with ``count`` pending pages whose images are stored."""

    def _seed(count: int) -> Tuple[Lot, List[str]]:
        return seed_pages(pipeline, count)

    return _seed
