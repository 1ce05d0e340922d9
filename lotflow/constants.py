from __future__ import annotations

# Single source of truth for static constants.

# Routing for pages classified as "mixed". Earlier revisions of the pipeline
# sent them to the high-capability model; the default now treats them like
# typed pages. Overridable through ROUTE_MIXED_TO_HIGH_CAPABILITY.
ROUTE_MIXED_TO_HIGH_CAPABILITY = False

# Queue names.
CLASSIFICATION_QUEUE = "page-classification"
EXTRACTION_QUEUE = "page-extraction"
BATCH_QUEUE = "batch-processing"

# Message recorded on pages whose bulk job stopped being polled.
POLL_TIMEOUT_STATE = "poll_timeout"

PAGE_IMAGE_MIME = "image/png"
