from __future__ import annotations

from pydantic import BaseModel, Field
from typing import Literal, Optional, List
from datetime import datetime


JobStatusLiteral = Literal["pending", "processing", "completed", "failed"]


class QueueJob(BaseModel):
    id: int
    source_id: str
    title: Optional[str] = None
    status: JobStatusLiteral
    error: Optional[str] = None
    result_summary: Optional[str] = None
    customer_id: Optional[int] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QueueJobList(BaseModel):
    jobs: List[QueueJob]
    total: int


class EnqueueRequest(BaseModel):
    source_id: str = Field(min_length=1)
    title: Optional[str] = None


class EnqueueResponse(BaseModel):
    job: QueueJob


class BulkEnqueueItem(BaseModel):
    # Missing ids are reported per item instead of failing the whole request
    source_id: Optional[str] = None
    title: Optional[str] = None


class BulkEnqueueRequest(BaseModel):
    sessions: List[BulkEnqueueItem]
    limit: Optional[int] = Field(default=None, ge=1)


class BulkEnqueueError(BaseModel):
    source_id: Optional[str] = None
    error: str


class BulkEnqueueResult(BaseModel):
    queued: int = 0
    skipped: int = 0
    already_processed: int = 0
    already_queued: int = 0
    errors: List[BulkEnqueueError] = Field(default_factory=list)
    total_requested: int = 0


class QueueStatus(BaseModel):
    running: bool
    pending_count: int
    processing: bool
    current_job: Optional[QueueJob] = None
    recent: List[QueueJob] = Field(default_factory=list)
