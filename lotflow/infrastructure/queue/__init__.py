"""Job queue adapters."""

from .in_process_queue import InProcessJobQueue, QueueOptions, QueuedJob
from .rate_limiter import RateLimiter

__all__ = ["InProcessJobQueue", "QueueOptions", "QueuedJob", "RateLimiter"]
