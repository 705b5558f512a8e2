from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship

from app.models.base import Base, IdMixin, TimestampMixin


class Customer(Base, IdMixin, TimestampMixin):
    __tablename__ = "customer"

    name = Column(String, nullable=False, index=True)
    # Unknown customers are never matched by name; each unresolved session gets its own row
    is_unknown = Column(Boolean, nullable=False, default=False)

    diagram = relationship("Diagram", back_populates="customer", uselist=False, passive_deletes=True)
    action_items = relationship("ActionItem", back_populates="customer", passive_deletes=True)
    session_notes = relationship("SessionNote", back_populates="customer", passive_deletes=True)
