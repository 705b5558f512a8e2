from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_job_store, get_queue_worker
from app.db.session import get_db
from app.schemas.queue import (
    BulkEnqueueRequest,
    BulkEnqueueResult,
    EnqueueRequest,
    EnqueueResponse,
    JobStatusLiteral,
    QueueJobList,
    QueueStatus,
)
from app.services import queue_service
from app.services.job_store import JobRepository
from app.services.queue_worker import QueueWorker

router = APIRouter()


@router.get("/status", response_model=QueueStatus)
def queue_status(worker: QueueWorker = Depends(get_queue_worker)):
    return worker.get_status()


@router.get("/jobs", response_model=QueueJobList)
def list_jobs(
    status_filter: Optional[JobStatusLiteral] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    store: JobRepository = Depends(get_job_store),
):
    jobs = store.list_jobs(status=status_filter, limit=limit)
    return {"jobs": jobs, "total": len(jobs)}


@router.post("", response_model=EnqueueResponse, status_code=status.HTTP_201_CREATED)
def enqueue(
    payload: EnqueueRequest,
    db: Session = Depends(get_db),
    store: JobRepository = Depends(get_job_store),
):
    job = queue_service.enqueue(db, store, payload.source_id.strip(), payload.title)
    return {"job": job}


@router.post("/bulk", response_model=BulkEnqueueResult)
def enqueue_bulk(
    payload: BulkEnqueueRequest,
    db: Session = Depends(get_db),
    store: JobRepository = Depends(get_job_store),
):
    return queue_service.enqueue_bulk(db, store, payload.sessions, payload.limit)


@router.delete("/{job_id}")
def cancel_job(job_id: int, store: JobRepository = Depends(get_job_store)):
    queue_service.cancel(store, job_id)
    return {"deleted": True}


@router.post("/{job_id}/retry", response_model=EnqueueResponse)
def retry_job(job_id: int, store: JobRepository = Depends(get_job_store)):
    return {"job": queue_service.retry(store, job_id)}
