"""
Queue operations used by the HTTP layer: enqueue (single / bulk), cancel, retry.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.core.errors import (
    AlreadyProcessedError,
    AlreadyQueuedError,
    InvalidStateError,
    NotFoundError,
    PipelineError,
    SessionSkippedError,
)
from app.models.queue_job import JobStatus
from app.schemas.queue import BulkEnqueueError, BulkEnqueueItem, BulkEnqueueResult, QueueJob
from app.services import session_note_service
from app.services.job_store import JobRepository

logger = logging.getLogger(__name__)


def enqueue(db: Session, store: JobRepository, source_id: str, title: Optional[str] = None) -> QueueJob:
    session_note_service.ensure_processable(db, source_id)
    return store.enqueue(source_id, title)


def enqueue_bulk(
    db: Session,
    store: JobRepository,
    sessions: Iterable[BulkEnqueueItem],
    limit: Optional[int] = None,
) -> BulkEnqueueResult:
    """Queue many sessions; each item is counted on its own, never all-or-nothing."""
    items = list(sessions)
    if limit:
        items = items[:limit]
    result = BulkEnqueueResult(total_requested=len(items))

    for item in items:
        source_id = (item.source_id or "").strip()
        if not source_id:
            result.errors.append(BulkEnqueueError(source_id=None, error="Missing source_id"))
            continue
        try:
            enqueue(db, store, source_id, item.title)
        except AlreadyProcessedError:
            result.already_processed += 1
        except SessionSkippedError:
            result.skipped += 1
        except AlreadyQueuedError:
            result.already_queued += 1
        except PipelineError as exc:
            result.errors.append(BulkEnqueueError(source_id=source_id, error=exc.message))
        else:
            result.queued += 1

    logger.info(
        "queue_bulk_enqueued queued=%s processed=%s skipped=%s queued_before=%s errors=%s",
        result.queued,
        result.already_processed,
        result.skipped,
        result.already_queued,
        len(result.errors),
    )
    return result


def cancel(store: JobRepository, job_id: int) -> None:
    job = store.get(job_id)
    if job is None:
        raise NotFoundError("Job not found")
    if job.status != JobStatus.PENDING.value:
        raise InvalidStateError(f"Cannot cancel job with status: {job.status}")
    if not store.cancel_pending(job_id):
        # Worker claimed it between the read and the delete
        raise InvalidStateError("Could not cancel job")


def retry(store: JobRepository, job_id: int) -> QueueJob:
    job = store.get(job_id)
    if job is None:
        raise NotFoundError("Job not found")
    if job.status != JobStatus.FAILED.value:
        raise InvalidStateError(f"Cannot retry job with status: {job.status}")
    if not store.retry_failed(job_id):
        raise InvalidStateError("Could not retry job")
    return store.get(job_id)
