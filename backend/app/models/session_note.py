from sqlalchemy import JSON, Boolean, Column, Date, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.models.base import Base, IdMixin, TimestampMixin


class SessionNote(Base, IdMixin, TimestampMixin):
    __tablename__ = "session_note"

    source_id = Column(String, nullable=False, unique=True)
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="SET NULL"), nullable=True, index=True)
    call_type = Column(String, nullable=True)  # technical / partner / non-technical
    title = Column(String, nullable=True)
    summary = Column(Text, nullable=True)
    action_items = Column(JSON, nullable=True)
    components = Column(JSON, nullable=True)
    gaps = Column(JSON, nullable=True)
    skipped = Column(Boolean, nullable=False, default=False)
    session_date = Column(Date, nullable=True)

    customer = relationship("Customer", back_populates="session_notes")
    items = relationship("ActionItem", back_populates="session_note", passive_deletes=True)
