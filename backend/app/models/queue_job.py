from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from app.models.base import Base, IdMixin, TimestampMixin


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (JobStatus.COMPLETED.value, JobStatus.FAILED.value)


class QueueJob(Base, IdMixin, TimestampMixin):
    __tablename__ = "queue_job"

    source_id = Column(String, nullable=False, unique=True)
    title = Column(String, nullable=True)
    status = Column(String, nullable=False, default=JobStatus.PENDING.value, index=True)
    error = Column(Text, nullable=True)
    result_summary = Column(Text, nullable=True)
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="SET NULL"), nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
