from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.models.base import Base, IdMixin, TimestampMixin


class ActionItem(Base, IdMixin, TimestampMixin):
    __tablename__ = "action_item"

    # Owned by the customer, not by a diagram
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="CASCADE"), nullable=False, index=True)
    session_note_id = Column(Integer, ForeignKey("session_note.id", ondelete="SET NULL"), nullable=True, index=True)
    owner = Column(String, nullable=False, default="Unknown")
    text = Column(Text, nullable=False)
    completed = Column(Boolean, nullable=False, default=False, index=True)
    completed_at = Column(DateTime, nullable=True)
    session_date = Column(Date, nullable=True)
    session_title = Column(String, nullable=True)

    customer = relationship("Customer", back_populates="action_items")
    session_note = relationship("SessionNote", back_populates="items")
