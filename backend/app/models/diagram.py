from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.models.base import Base, IdMixin, TimestampMixin


class Diagram(Base, IdMixin, TimestampMixin):
    __tablename__ = "diagram"

    # One diagram per customer
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="CASCADE"), nullable=False, unique=True)

    customer = relationship("Customer", back_populates="diagram")
    versions = relationship(
        "DiagramVersion",
        back_populates="diagram",
        order_by="DiagramVersion.version",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    sessions = relationship("DiagramSession", back_populates="diagram", cascade="all, delete-orphan", passive_deletes=True)


class DiagramVersion(Base, IdMixin):
    __tablename__ = "diagram_version"
    __table_args__ = (UniqueConstraint("diagram_id", "version", name="uq_diagram_version_number"),)

    diagram_id = Column(Integer, ForeignKey("diagram.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    source = Column(Text, nullable=False)  # mermaid flowchart / mindmap
    image_path = Column(String, nullable=True)  # null when rendering failed
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    diagram = relationship("Diagram", back_populates="versions")


class DiagramSession(Base, IdMixin):
    __tablename__ = "diagram_session"

    diagram_id = Column(Integer, ForeignKey("diagram.id", ondelete="CASCADE"), nullable=False, index=True)
    source_id = Column(String, nullable=False, index=True)
    processed_at = Column(DateTime, default=utcnow, nullable=False)

    diagram = relationship("Diagram", back_populates="sessions")
