"""
Diagram persistence service.

A customer owns at most one diagram; the diagram owns an append-only list of
versions numbered 1..n. Rendering happens after the version row is
committed, so a version may exist without an image.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.models import Customer, Diagram, DiagramSession, DiagramVersion

logger = logging.getLogger(__name__)

_APPEND_ATTEMPTS = 3


def get_diagram(db: Session, diagram_id: int) -> Optional[Diagram]:
    return db.get(Diagram, diagram_id)


def get_diagram_by_customer(db: Session, customer_id: int) -> Optional[Diagram]:
    return db.execute(select(Diagram).where(Diagram.customer_id == customer_id)).scalar_one_or_none()


def get_or_create_diagram(db: Session, customer_id: int) -> Diagram:
    existing = get_diagram_by_customer(db, customer_id)
    if existing:
        return existing
    diagram = Diagram(customer_id=customer_id)
    try:
        db.add(diagram)
        db.commit()
    except IntegrityError:
        # Another writer created it first
        db.rollback()
        return db.execute(select(Diagram).where(Diagram.customer_id == customer_id)).scalar_one()
    except Exception:
        db.rollback()
        raise
    db.refresh(diagram)
    return diagram


def append_version(
    db: Session,
    *,
    diagram_id: int,
    source: str,
    notes: Optional[str] = None,
) -> DiagramVersion:
    """Append the next version (max + 1, starting at 1) to a diagram."""
    for attempt in range(1, _APPEND_ATTEMPTS + 1):
        next_version = db.execute(
            select(func.coalesce(func.max(DiagramVersion.version), 0) + 1).where(
                DiagramVersion.diagram_id == diagram_id
            )
        ).scalar_one()
        version = DiagramVersion(
            diagram_id=diagram_id,
            version=int(next_version),
            source=source,
            notes=notes,
            created_at=utcnow(),
        )
        try:
            db.add(version)
            db.commit()
        except IntegrityError:
            # (diagram_id, version) taken by a concurrent append; recompute
            db.rollback()
            logger.warning("diagram_version_conflict diagram_id=%s version=%s attempt=%s", diagram_id, next_version, attempt)
            continue
        except Exception:
            db.rollback()
            raise
        db.refresh(version)
        return version
    raise RuntimeError(f"Could not allocate a version number for diagram {diagram_id}")


def record_session(db: Session, diagram_id: int, source_id: str) -> None:
    try:
        db.add(DiagramSession(diagram_id=diagram_id, source_id=source_id, processed_at=utcnow()))
        db.commit()
    except Exception:
        db.rollback()
        raise


def session_has_diagram(db: Session, source_id: str) -> bool:
    row = db.execute(select(DiagramSession.id).where(DiagramSession.source_id == source_id).limit(1)).first()
    return row is not None


def set_version_image(db: Session, version_id: int, image_path: Optional[str]) -> bool:
    try:
        result = db.execute(update(DiagramVersion).where(DiagramVersion.id == version_id).values(image_path=image_path))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return result.rowcount > 0


def get_latest_version(db: Session, diagram_id: int) -> Optional[DiagramVersion]:
    return db.execute(
        select(DiagramVersion)
        .where(DiagramVersion.diagram_id == diagram_id)
        .order_by(DiagramVersion.version.desc())
        .limit(1)
    ).scalar_one_or_none()


def list_versions(db: Session, diagram_id: int) -> List[DiagramVersion]:
    return list(
        db.execute(
            select(DiagramVersion)
            .where(DiagramVersion.diagram_id == diagram_id)
            .order_by(DiagramVersion.version.desc())
        ).scalars()
    )


def list_sessions(db: Session, diagram_id: int) -> List[DiagramSession]:
    return list(
        db.execute(
            select(DiagramSession)
            .where(DiagramSession.diagram_id == diagram_id)
            .order_by(DiagramSession.processed_at.desc(), DiagramSession.id.desc())
        ).scalars()
    )


def _summary_stmt():
    latest = (
        select(DiagramVersion.diagram_id, func.max(DiagramVersion.version).label("latest_version"))
        .group_by(DiagramVersion.diagram_id)
        .subquery()
    )
    return (
        select(
            Diagram,
            Customer.name,
            Customer.is_unknown,
            DiagramVersion.version,
            DiagramVersion.image_path,
            DiagramVersion.created_at,
        )
        .join(Customer, Customer.id == Diagram.customer_id)
        .outerjoin(latest, latest.c.diagram_id == Diagram.id)
        .outerjoin(
            DiagramVersion,
            and_(DiagramVersion.diagram_id == Diagram.id, DiagramVersion.version == latest.c.latest_version),
        )
    )


def _summary_row(row) -> Dict[str, Any]:
    diagram, customer_name, customer_is_unknown, version, image_path, version_created_at = row
    return {
        "id": diagram.id,
        "customer_id": diagram.customer_id,
        "customer_name": customer_name,
        "customer_is_unknown": bool(customer_is_unknown),
        "latest_version": version,
        "image_path": image_path,
        "version_created_at": version_created_at,
        "created_at": diagram.created_at,
    }


def list_diagrams(db: Session) -> Dict[str, Any]:
    stmt = _summary_stmt().order_by(
        func.coalesce(DiagramVersion.created_at, Diagram.created_at).desc(), Diagram.id.desc()
    )
    rows = [_summary_row(row) for row in db.execute(stmt).all()]
    return {"diagrams": rows, "total": len(rows)}


def get_diagram_detail(db: Session, diagram_id: int) -> Optional[Dict[str, Any]]:
    row = db.execute(_summary_stmt().where(Diagram.id == diagram_id)).first()
    if row is None:
        return None
    detail = _summary_row(row)
    detail["versions"] = list_versions(db, diagram_id)
    detail["sessions"] = list_sessions(db, diagram_id)
    return detail


def delete_diagram(db: Session, diagram_id: int) -> Optional[List[str]]:
    """
    Delete a diagram with its versions and session links.

    Action items hang off the customer, not the diagram, and are left alone.
    Returns the image paths of the removed versions, or None when missing.
    """
    if not db.get(Diagram, diagram_id):
        return None
    image_paths = db.execute(
        select(DiagramVersion.image_path).where(
            DiagramVersion.diagram_id == diagram_id, DiagramVersion.image_path.is_not(None)
        )
    ).scalars().all()
    try:
        db.execute(delete(Diagram).where(Diagram.id == diagram_id))
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.expire_all()
    logger.info("diagram_deleted diagram_id=%s images=%s", diagram_id, len(image_paths))
    return list(image_paths)
