"""In-process job queue.

One bounded ``ThreadPoolExecutor`` per named queue, ``threading.Timer`` for
delayed jobs and retry backoff, and an optional rate limiter per queue.
Delivery is at-least-once within the process lifetime; nothing survives a
restart.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

CompletedCallback = Callable[[Any, Any], None]
FailedCallback = Callable[[Any, BaseException], None]


@dataclass(frozen=True)
class QueueOptions:
    concurrency: int = 1
    attempts: int = 1
    backoff_seconds: float = 0.0
    rate_limit_max: Optional[int] = None
    rate_limit_window_seconds: float = 60.0
    lock_duration_seconds: Optional[float] = None

    def backoff_for(self, attempt: int) -> float:
        """Exponential delay before retrying after failed ``attempt`` (1-based)."""
        return self.backoff_seconds * (2 ** (attempt - 1))


@dataclass(frozen=True)
class QueuedJob:
    queue_name: str
    job_name: str
    payload: Any
    attempt: int = 1


class _NamedQueue:
    def __init__(self, name: str, options: QueueOptions) -> None:
        self.name = name
        self.options = options
        self.executor = ThreadPoolExecutor(max_workers=options.concurrency, thread_name_prefix=name)
        self.limiter = (
            RateLimiter(options.rate_limit_max, options.rate_limit_window_seconds)
            if options.rate_limit_max
            else None
        )
        self.handler: Optional[Callable[[Any], Any]] = None
        self.completed: List[CompletedCallback] = []
        self.failed: List[FailedCallback] = []


class InProcessJobQueue:
    """Thread-pool backed implementation of the job queue contract."""

    def __init__(self) -> None:
        self._queues: Dict[str, _NamedQueue] = {}
        self._timers: set[threading.Timer] = set()
        self._lock = threading.Lock()
        self._stopping = threading.Event()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------
    def declare(self, queue_name: str, options: QueueOptions) -> None:
        with self._lock:
            if queue_name in self._queues:
                raise ValueError(f"Queue {queue_name} already declared")
            self._queues[queue_name] = _NamedQueue(queue_name, options)
        logger.info(
            "Declared queue %s (concurrency=%d, attempts=%d)",
            queue_name,
            options.concurrency,
            options.attempts,
        )

    def register(self, queue_name: str, handler: Callable[[Any], Any]) -> None:
        self._get(queue_name).handler = handler

    def on_completed(self, queue_name: str, callback: CompletedCallback) -> None:
        self._get(queue_name).completed.append(callback)

    def on_failed(self, queue_name: str, callback: FailedCallback) -> None:
        """``callback`` runs once a job has used up every attempt."""
        self._get(queue_name).failed.append(callback)

    # ------------------------------------------------------------------
    # Producing
    # ------------------------------------------------------------------
    def enqueue(self, queue_name: str, job_name: str, payload: Any, delay_seconds: float = 0) -> None:
        if self._stopping.is_set():
            raise RuntimeError(f"Queue {queue_name} is shut down")
        queue = self._get(queue_name)
        if queue.handler is None:
            raise RuntimeError(f"No handler registered for queue {queue_name}")
        self._schedule(QueuedJob(queue_name, job_name, payload), delay_seconds)

    def shutdown(self, wait: bool = True) -> None:
        self._stopping.set()
        with self._lock:
            timers = list(self._timers)
            self._timers.clear()
            queues = list(self._queues.values())
        for timer in timers:
            timer.cancel()
        for queue in queues:
            queue.executor.shutdown(wait=wait, cancel_futures=True)
        logger.info("Job queue stopped (%d delayed job(s) dropped)", len(timers))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _get(self, queue_name: str) -> _NamedQueue:
        try:
            return self._queues[queue_name]
        except KeyError:
            raise ValueError(f"Unknown queue {queue_name}") from None

    def _schedule(self, job: QueuedJob, delay_seconds: float) -> None:
        if delay_seconds <= 0:
            self._submit(job)
            return

        timer: threading.Timer

        def fire() -> None:
            with self._lock:
                self._timers.discard(timer)
            self._submit(job)

        timer = threading.Timer(delay_seconds, fire)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()

    def _submit(self, job: QueuedJob) -> None:
        if self._stopping.is_set():
            logger.debug("Dropping %s/%s after shutdown", job.queue_name, job.job_name)
            return
        self._get(job.queue_name).executor.submit(self._run, job)

    def _run(self, job: QueuedJob) -> None:
        queue = self._get(job.queue_name)
        if queue.limiter is not None and not queue.limiter.acquire(self._stopping):
            return

        started = time.monotonic()
        try:
            result = queue.handler(job.payload)
        except Exception as exc:
            self._handle_failure(queue, job, exc)
            return
        finally:
            self._check_lock_duration(queue, job, time.monotonic() - started)

        for callback in queue.completed:
            try:
                callback(job.payload, result)
            except Exception:
                logger.exception("Completed hook failed for %s/%s", job.queue_name, job.job_name)

    def _handle_failure(self, queue: _NamedQueue, job: QueuedJob, exc: Exception) -> None:
        if job.attempt < queue.options.attempts and not self._stopping.is_set():
            delay = queue.options.backoff_for(job.attempt)
            logger.warning(
                "Job %s/%s failed on attempt %d/%d, retrying in %.0fs: %s",
                job.queue_name,
                job.job_name,
                job.attempt,
                queue.options.attempts,
                delay,
                exc,
            )
            self._schedule(
                QueuedJob(job.queue_name, job.job_name, job.payload, job.attempt + 1),
                delay,
            )
            return

        logger.error(
            "Job %s/%s failed after %d attempt(s): %s",
            job.queue_name,
            job.job_name,
            job.attempt,
            exc,
            exc_info=exc,
        )
        for callback in queue.failed:
            try:
                callback(job.payload, exc)
            except Exception:
                logger.exception("Failed hook raised for %s/%s", job.queue_name, job.job_name)

    @staticmethod
    def _check_lock_duration(queue: _NamedQueue, job: QueuedJob, elapsed: float) -> None:
        limit = queue.options.lock_duration_seconds
        if limit is not None and elapsed > limit:
            logger.warning(
                "Job %s/%s ran %.1fs, longer than its %.0fs lock",
                job.queue_name,
                job.job_name,
                elapsed,
                limit,
            )
