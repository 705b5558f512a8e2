"""
Persistent queue job store.

The queue is a table: one row per source session, moving through
pending -> processing -> completed | failed. Every mutation is a single
guarded statement so HTTP enqueue calls and the worker loop can interleave
without row locks. The worker is the only caller of mark_processing, and the
guard in that statement keeps at most one row in `processing`.
"""
from __future__ import annotations

from contextlib import contextmanager
from datetime import timedelta
import logging
from typing import Callable, Iterator, List, Optional, Protocol

from sqlalchemy import and_, delete, exists, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from app.core.clock import Clock, utcnow
from app.core.errors import AlreadyQueuedError
from app.models.queue_job import TERMINAL_STATUSES, JobStatus, QueueJob
from app.schemas.queue import QueueJob as QueueJobRecord

logger = logging.getLogger(__name__)

INTERRUPTED_ERROR = "Interrupted by server restart"


class JobRepository(Protocol):
    """Storage contract the worker and queue API depend on."""

    def enqueue(self, source_id: str, title: Optional[str] = None) -> QueueJobRecord: ...

    def next_pending(self) -> Optional[QueueJobRecord]: ...

    def current_processing(self) -> Optional[QueueJobRecord]: ...

    def mark_processing(self, job_id: int) -> bool: ...

    def mark_completed(self, job_id: int, summary: str, customer_id: Optional[int]) -> bool: ...

    def mark_failed(self, job_id: int, error: str) -> bool: ...

    def cancel_pending(self, job_id: int) -> bool: ...

    def retry_failed(self, job_id: int) -> bool: ...

    def reset_interrupted(self) -> int: ...

    def prune_completed_older_than(self, age: timedelta) -> int: ...

    def get(self, job_id: int) -> Optional[QueueJobRecord]: ...

    def get_by_source(self, source_id: str) -> Optional[QueueJobRecord]: ...

    def pending_count(self) -> int: ...

    def recent_terminal(self, limit: int) -> List[QueueJobRecord]: ...

    def list_jobs(self, status: Optional[str] = None, limit: int = 100) -> List[QueueJobRecord]: ...


def _record(row: Optional[QueueJob]) -> Optional[QueueJobRecord]:
    if row is None:
        return None
    return QueueJobRecord.model_validate(row)


class SqlJobStore:
    """JobRepository backed by the `queue_job` table."""

    def __init__(self, session_factory: Callable[[], Session], clock: Clock = utcnow):
        self._session_factory = session_factory
        self._clock = clock

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _update(self, stmt) -> int:
        with self._session() as db:
            result = db.execute(stmt.execution_options(synchronize_session=False))
            db.commit()
            return result.rowcount

    # ---- writes -------------------------------------------------------

    def enqueue(self, source_id: str, title: Optional[str] = None) -> QueueJobRecord:
        """
        Queue a session.

        A failed row is reset to pending in place (same id, error cleared).
        A completed row is replaced by a fresh pending row. A pending or
        processing row raises AlreadyQueuedError.
        """
        now = self._clock()
        with self._session() as db:
            reset = db.execute(
                update(QueueJob)
                .where(QueueJob.source_id == source_id, QueueJob.status == JobStatus.FAILED.value)
                .values(
                    status=JobStatus.PENDING.value,
                    title=title,
                    error=None,
                    result_summary=None,
                    started_at=None,
                    completed_at=None,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if reset.rowcount == 0:
                db.execute(
                    delete(QueueJob)
                    .where(QueueJob.source_id == source_id, QueueJob.status == JobStatus.COMPLETED.value)
                    .execution_options(synchronize_session=False)
                )
                db.add(
                    QueueJob(
                        source_id=source_id,
                        title=title,
                        status=JobStatus.PENDING.value,
                        created_at=now,
                        updated_at=now,
                    )
                )
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise AlreadyQueuedError(source_id)
            job = db.execute(select(QueueJob).where(QueueJob.source_id == source_id)).scalar_one()
            logger.info("queue_enqueued job_id=%s source_id=%s reset=%s", job.id, source_id, bool(reset.rowcount))
            return _record(job)

    def mark_processing(self, job_id: int) -> bool:
        # Guarded: only a pending row, and only while nothing else is processing
        in_flight = aliased(QueueJob)
        stmt = (
            update(QueueJob)
            .where(
                QueueJob.id == job_id,
                QueueJob.status == JobStatus.PENDING.value,
                ~exists(select(in_flight.id).where(in_flight.status == JobStatus.PROCESSING.value)),
            )
            .values(status=JobStatus.PROCESSING.value, started_at=self._clock(), updated_at=self._clock())
        )
        return self._update(stmt) == 1

    def mark_completed(self, job_id: int, summary: str, customer_id: Optional[int]) -> bool:
        now = self._clock()
        stmt = (
            update(QueueJob)
            .where(QueueJob.id == job_id, QueueJob.status == JobStatus.PROCESSING.value)
            .values(
                status=JobStatus.COMPLETED.value,
                result_summary=summary,
                error=None,
                completed_at=now,
                updated_at=now,
            )
        )
        try:
            return self._update(stmt.values(customer_id=customer_id)) == 1
        except IntegrityError:
            # Customer merged or deleted while the job ran
            logger.warning("queue_job_customer_missing job_id=%s customer_id=%s", job_id, customer_id)
            return self._update(stmt.values(customer_id=None)) == 1

    def mark_failed(self, job_id: int, error: str) -> bool:
        now = self._clock()
        stmt = (
            update(QueueJob)
            .where(QueueJob.id == job_id, QueueJob.status == JobStatus.PROCESSING.value)
            .values(status=JobStatus.FAILED.value, error=error, completed_at=now, updated_at=now)
        )
        return self._update(stmt) == 1

    def cancel_pending(self, job_id: int) -> bool:
        stmt = delete(QueueJob).where(QueueJob.id == job_id, QueueJob.status == JobStatus.PENDING.value)
        return self._update(stmt) == 1

    def retry_failed(self, job_id: int) -> bool:
        stmt = (
            update(QueueJob)
            .where(QueueJob.id == job_id, QueueJob.status == JobStatus.FAILED.value)
            .values(
                status=JobStatus.PENDING.value,
                error=None,
                result_summary=None,
                started_at=None,
                completed_at=None,
                updated_at=self._clock(),
            )
        )
        return self._update(stmt) == 1

    def reset_interrupted(self) -> int:
        """Fail every row left in `processing` by a previous process."""
        now = self._clock()
        stmt = (
            update(QueueJob)
            .where(QueueJob.status == JobStatus.PROCESSING.value)
            .values(status=JobStatus.FAILED.value, error=INTERRUPTED_ERROR, completed_at=now, updated_at=now)
        )
        return self._update(stmt)

    def prune_completed_older_than(self, age: timedelta) -> int:
        cutoff = self._clock() - age
        stmt = delete(QueueJob).where(
            and_(QueueJob.status == JobStatus.COMPLETED.value, QueueJob.completed_at < cutoff)
        )
        return self._update(stmt)

    # ---- reads --------------------------------------------------------

    def get(self, job_id: int) -> Optional[QueueJobRecord]:
        with self._session() as db:
            return _record(db.get(QueueJob, job_id))

    def get_by_source(self, source_id: str) -> Optional[QueueJobRecord]:
        with self._session() as db:
            return _record(db.execute(select(QueueJob).where(QueueJob.source_id == source_id)).scalar_one_or_none())

    def next_pending(self) -> Optional[QueueJobRecord]:
        with self._session() as db:
            row = db.execute(
                select(QueueJob)
                .where(QueueJob.status == JobStatus.PENDING.value)
                .order_by(QueueJob.created_at.asc(), QueueJob.id.asc())
                .limit(1)
            ).scalar_one_or_none()
            return _record(row)

    def current_processing(self) -> Optional[QueueJobRecord]:
        with self._session() as db:
            row = db.execute(
                select(QueueJob).where(QueueJob.status == JobStatus.PROCESSING.value).limit(1)
            ).scalar_one_or_none()
            return _record(row)

    def pending_count(self) -> int:
        with self._session() as db:
            return int(
                db.execute(
                    select(func.count(QueueJob.id)).where(QueueJob.status == JobStatus.PENDING.value)
                ).scalar_one()
            )

    def recent_terminal(self, limit: int) -> List[QueueJobRecord]:
        with self._session() as db:
            rows = db.execute(
                select(QueueJob)
                .where(QueueJob.status.in_(TERMINAL_STATUSES))
                .order_by(QueueJob.completed_at.desc(), QueueJob.id.desc())
                .limit(limit)
            ).scalars().all()
            return [_record(row) for row in rows]

    def list_jobs(self, status: Optional[str] = None, limit: int = 100) -> List[QueueJobRecord]:
        with self._session() as db:
            stmt = select(QueueJob).order_by(QueueJob.created_at.asc(), QueueJob.id.asc()).limit(limit)
            if status:
                stmt = stmt.where(QueueJob.status == status)
            return [_record(row) for row in db.execute(stmt).scalars().all()]
