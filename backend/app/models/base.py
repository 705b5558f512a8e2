from sqlalchemy import Column, DateTime, Integer

from app.core.clock import utcnow
from app.db.base import Base


class IdMixin:
    id = Column(Integer, primary_key=True, autoincrement=True)


class TimestampMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


__all__ = ["Base", "IdMixin", "TimestampMixin"]
