"""
In-process retry queue with exponential backoff.

A RetryQueue is a single-consumer job runner: one drain task per queue
instance hands payloads to an injected async handler, strictly one at a
time. Failed jobs are retried with exponential backoff plus jitter and,
after their backoff, are reinserted at the FRONT of the queue so they run
before anything enqueued later. Fresh jobs are appended at the back.

HARD GUARANTEES (per enqueued job):
- exactly one terminal outcome: a successful handler call, or one
  ``on_failure`` call after ``max_retries`` retries
- ``attempt`` only ever increases
- no two handler calls overlap within one queue

Known limitation: state lives in memory only. Jobs still queued when the
process dies are lost.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections import deque
from dataclasses import dataclass
from typing import (
    Awaitable,
    Callable,
    Deque,
    Generic,
    Optional,
    TypeVar,
)

from verilens.app.errors import RetryExhaustedError

logger = logging.getLogger("verilens.blockchain.retry_queue")

T = TypeVar("T")

RetryHandler = Callable[[T], Awaitable[None]]
FailureHandler = Callable[[T, RetryExhaustedError], None]


@dataclass
class QueueJob(Generic[T]):
    payload: T
    attempt: int = 0


class RetryQueue(Generic[T]):
    """
    Sequential job runner with bounded retries.

    Results are not stored. A handler that needs to report a value does
    so through its payload (e.g. by resolving a future it carries).
    """

    def __init__(
        self,
        handler: RetryHandler[T],
        *,
        max_retries: int = 5,
        base_delay_ms: int = 500,
        on_failure: Optional[FailureHandler[T]] = None,
        attempt_timeout: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")

        self._handler = handler
        self._max_retries = max_retries
        self._base_delay_ms = base_delay_ms
        self._on_failure = on_failure
        self._attempt_timeout = attempt_timeout
        self._rng = rng or random.Random()

        self._jobs: Deque[QueueJob[T]] = deque()
        self._processing = False
        self._drain_task: Optional[asyncio.Task[None]] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def enqueue(self, payload: T) -> None:
        """
        Append a job and make sure a drain task is running.

        Must be called from within a running event loop. Returns
        immediately; completion is reported through the handler or
        ``on_failure``.
        """
        self._jobs.append(QueueJob(payload=payload))

        # Check-and-set without an await in between: at most one drain.
        if self._processing:
            return
        self._processing = True

        loop = asyncio.get_running_loop()
        self._drain_task = loop.create_task(self._drain())

    async def join(self) -> None:
        """Wait until the current drain (if any) has emptied the queue."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    @property
    def processing(self) -> bool:
        return self._processing

    def __len__(self) -> int:
        return len(self._jobs)

    def backoff_delay_ms(self, attempt: int) -> float:
        """
        Delay before retry number ``attempt`` (1-based).

        ``base * 2**(attempt-1)`` plus uniform jitter in ``[0, base)``.
        """
        jitter = self._rng.random() * self._base_delay_ms
        return self._base_delay_ms * 2 ** (attempt - 1) + jitter

    # ------------------------------------------------------------------
    # Drain loop
    # ------------------------------------------------------------------

    async def _drain(self) -> None:
        try:
            while self._jobs:
                job = self._jobs.popleft()
                await self._attempt(job)
        finally:
            self._processing = False

    async def _attempt(self, job: QueueJob[T]) -> None:
        try:
            if self._attempt_timeout is None:
                await self._handler(job.payload)
            else:
                await asyncio.wait_for(
                    self._handler(job.payload),
                    timeout=self._attempt_timeout,
                )
        except Exception as exc:
            job.attempt += 1

            if job.attempt > self._max_retries:
                self._fail(job, exc)
                return

            delay_ms = self.backoff_delay_ms(job.attempt)
            logger.warning(
                "retry_job_scheduled",
                extra={
                    "attempt": job.attempt,
                    "delay_ms": round(delay_ms, 1),
                    "error_type": type(exc).__name__,
                },
            )
            await asyncio.sleep(delay_ms / 1000.0)
            self._jobs.appendleft(job)
            return

        logger.info(
            "retry_job_processed",
            extra={"attempt": job.attempt},
        )

    def _fail(self, job: QueueJob[T], cause: Exception) -> None:
        error = RetryExhaustedError(
            "Retry queue exhausted",
            attempts=job.attempt,
            details={"max_retries": self._max_retries},
        )
        error.__cause__ = cause

        logger.error(
            "retry_job_exhausted",
            extra={
                "attempts": job.attempt,
                "error_type": type(cause).__name__,
            },
        )

        if self._on_failure is None:
            return

        try:
            self._on_failure(job.payload, error)
        except Exception:
            # The job is already terminal; a broken callback must not
            # stall the jobs behind it.
            logger.exception("retry_failure_callback_raised")
