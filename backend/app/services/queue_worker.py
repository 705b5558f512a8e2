"""
Single-concurrency queue worker.

One asyncio task polls the job store on a fixed interval and runs at most one
job at a time through the session processor. A failing job is recorded as
failed; the loop keeps going. Status is read straight from the store so
callers can poll it without a push channel.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import timedelta
import logging
from typing import Awaitable, Callable, Dict, List, Literal, Optional, Protocol

from app.schemas.analysis import ProcessResult
from app.schemas.queue import QueueJob, QueueStatus
from app.services.job_store import JobRepository

logger = logging.getLogger(__name__)

Ticker = Callable[[float], Awaitable[None]]

CALL_TYPE_LABELS = {
    "technical": "Technical",
    "partner": "Partner",
    "non-technical": "Non-technical",
}


class Processor(Protocol):
    async def process(self, source_id: str, title: Optional[str] = None) -> ProcessResult: ...


@dataclass(frozen=True)
class WorkerEvent:
    type: Literal["completed", "failed"]
    job: QueueJob
    result: Optional[ProcessResult] = None
    error: Optional[str] = None


Listener = Callable[[WorkerEvent], None]


def summarize_result(result: ProcessResult) -> str:
    label = CALL_TYPE_LABELS.get(result.call_type, result.call_type)
    return f"{label}: {result.customer_name}"


class QueueWorker:
    def __init__(
        self,
        store: JobRepository,
        processor: Processor,
        *,
        poll_interval: float = 3.0,
        recent_limit: int = 10,
        prune_after: Optional[timedelta] = timedelta(hours=24),
        ticker: Ticker = asyncio.sleep,
    ):
        self.store = store
        self.processor = processor
        self.poll_interval = poll_interval
        self.recent_limit = recent_limit
        self.prune_after = prune_after
        self._ticker = ticker
        self._listeners: List[Listener] = []
        self._unrecorded: Dict[int, str] = {}
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # ---- listeners ----------------------------------------------------

    def add_listener(self, callback: Listener) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        self._listeners.append(callback)
        return lambda: self.remove_listener(callback)

    def remove_listener(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self, event: WorkerEvent) -> None:
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception:
                logger.exception("queue_listener_error event=%s job_id=%s", event.type, event.job.id)

    # ---- polling ------------------------------------------------------

    def _fail(self, job_id: int, error: str) -> None:
        try:
            self.store.mark_failed(job_id, error)
        except Exception:
            # poll_once retries this before claiming another job
            logger.exception("queue_job_fail_write_error job_id=%s", job_id)
            self._unrecorded[job_id] = error
            return
        self._unrecorded.pop(job_id, None)

    def _retry_unrecorded(self) -> None:
        for job_id, error in list(self._unrecorded.items()):
            self._fail(job_id, error)

    async def process_next(self) -> Optional[WorkerEvent]:
        job = self.store.next_pending()
        if job is None:
            return None
        if not self.store.mark_processing(job.id):
            # Cancelled or picked up between read and claim
            return None

        logger.info("queue_job_started job_id=%s source_id=%s", job.id, job.source_id)
        try:
            result = await self.processor.process(job.source_id, job.title)
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
            self._fail(job.id, error)
            logger.warning("queue_job_failed job_id=%s error=%s", job.id, error)
            event = WorkerEvent(type="failed", job=job, error=error)
            self._notify(event)
            return event

        summary = summarize_result(result)
        try:
            self.store.mark_completed(job.id, summary, result.customer_id)
        except Exception as exc:
            logger.exception("queue_job_complete_write_error job_id=%s", job.id)
            error = f"Failed to record result: {exc}"
            self._fail(job.id, error)
            event = WorkerEvent(type="failed", job=job, error=error)
            self._notify(event)
            return event
        logger.info("queue_job_completed job_id=%s summary=%s", job.id, summary)
        event = WorkerEvent(type="completed", job=job, result=result)
        self._notify(event)
        return event

    async def poll_once(self) -> Optional[WorkerEvent]:
        self._retry_unrecorded()
        if self.store.current_processing() is not None:
            return None
        return await self.process_next()

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.poll_once()
            except Exception:
                logger.exception("queue_poll_error")
            await self._ticker(self.poll_interval)

    # ---- lifecycle ----------------------------------------------------

    def recover(self) -> int:
        """Startup housekeeping: fail orphaned jobs and prune old completed ones."""
        stale = self.store.reset_interrupted()
        if stale:
            logger.info("queue_reset_stale_jobs count=%s", stale)
        if self.prune_after is not None:
            pruned = self.store.prune_completed_older_than(self.prune_after)
            if pruned:
                logger.info("queue_pruned_completed_jobs count=%s", pruned)
        return stale

    def start(self) -> None:
        if self._running:
            logger.info("queue_worker_already_running")
            return
        self.recover()
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("queue_worker_started interval=%s", self.poll_interval)

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        task, self._task = self._task, None
        if task is not None:
            # An in-flight job stays processing; reset_interrupted fails it on the next start
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("queue_worker_stopped")

    def get_status(self) -> QueueStatus:
        current = self.store.current_processing()
        return QueueStatus(
            running=self._running,
            pending_count=self.store.pending_count(),
            processing=current is not None,
            current_job=current,
            recent=self.store.recent_terminal(self.recent_limit),
        )
