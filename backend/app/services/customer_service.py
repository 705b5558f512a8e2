from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.models import ActionItem, Customer, Diagram, DiagramSession, DiagramVersion, QueueJob, SessionNote


logger = logging.getLogger(__name__)

UNKNOWN_CUSTOMER_NAME = "Unknown Customer"


def create_customer(db: Session, name: str, is_unknown: bool = False) -> Customer:
    customer = Customer(name=name.strip(), is_unknown=bool(is_unknown))
    try:
        db.add(customer)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(customer)
    return customer


def get_customer(db: Session, customer_id: int) -> Optional[Customer]:
    return db.get(Customer, customer_id)


def search_customers(db: Session, query: str, include_unknown: bool = True) -> List[Customer]:
    """Case-sensitive substring match on the customer name, ordered by name."""
    needle = (query or "").strip()
    if not needle:
        return []
    stmt = select(Customer).where(Customer.name.contains(needle, autoescape=True)).order_by(Customer.name, Customer.id)
    if not include_unknown:
        stmt = stmt.where(Customer.is_unknown.is_(False))
    # LIKE folds case on sqlite; re-check in python so both backends agree
    return [c for c in db.execute(stmt).scalars().all() if needle in c.name]


def find_known_customer(db: Session, name: str) -> Optional[Customer]:
    """Match a known customer by name: exact match first, then substring."""
    candidates = search_customers(db, name, include_unknown=False)
    if not candidates:
        return None
    needle = name.strip()
    for candidate in candidates:
        if candidate.name == needle:
            return candidate
    return candidates[0]


def get_or_create_known_customer(db: Session, name: str) -> Customer:
    existing = find_known_customer(db, name)
    if existing:
        return existing
    return create_customer(db, name, is_unknown=False)


def touch_customer(db: Session, customer_id: int) -> None:
    try:
        db.execute(update(Customer).where(Customer.id == customer_id).values(updated_at=utcnow()))
        db.commit()
    except Exception:
        db.rollback()
        raise


def _customer_rows(db: Session, only_unknown: bool = False) -> List[Dict[str, Any]]:
    diagram_count = (
        select(func.count(Diagram.id)).where(Diagram.customer_id == Customer.id).correlate(Customer).scalar_subquery()
    )
    open_items = (
        select(func.count(ActionItem.id))
        .where(ActionItem.customer_id == Customer.id, ActionItem.completed.is_(False))
        .correlate(Customer)
        .scalar_subquery()
    )
    stmt = select(Customer, diagram_count.label("diagram_count"), open_items.label("open_action_items"))
    if only_unknown:
        stmt = stmt.where(Customer.is_unknown.is_(True)).order_by(Customer.created_at.desc(), Customer.id.desc())
    else:
        stmt = stmt.order_by(Customer.updated_at.desc(), Customer.id.desc())
    rows = []
    for customer, diagrams, open_count in db.execute(stmt).all():
        rows.append(
            {
                "id": customer.id,
                "name": customer.name,
                "is_unknown": customer.is_unknown,
                "diagram_count": int(diagrams or 0),
                "open_action_items": int(open_count or 0),
                "created_at": customer.created_at,
                "updated_at": customer.updated_at,
            }
        )
    return rows


def list_customers(db: Session) -> Dict[str, Any]:
    rows = _customer_rows(db)
    return {"customers": rows, "total": len(rows)}


def list_unknown_customers(db: Session) -> Dict[str, Any]:
    rows = _customer_rows(db, only_unknown=True)
    return {"customers": rows, "total": len(rows)}


def rename_customer(db: Session, customer_id: int, name: str) -> Optional[Customer]:
    """Rename a customer; a named customer is no longer unknown."""
    try:
        result = db.execute(
            update(Customer)
            .where(Customer.id == customer_id)
            .values(name=name.strip(), is_unknown=False, updated_at=utcnow())
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    if result.rowcount == 0:
        return None
    customer = db.get(Customer, customer_id)
    db.refresh(customer)
    return customer


def merge_customer(db: Session, source_id: int, target_id: int) -> Optional[Customer]:
    """
    Fold `source_id` into `target_id` and delete the source customer.

    Session notes, action items and job references move over. Diagram
    versions are appended to the target's diagram with fresh version
    numbers so the target history stays contiguous.
    """
    if source_id == target_id:
        return db.get(Customer, target_id)
    source = db.get(Customer, source_id)
    target = db.get(Customer, target_id)
    if not source or not target:
        return None

    try:
        db.execute(update(SessionNote).where(SessionNote.customer_id == source_id).values(customer_id=target_id))
        db.execute(update(ActionItem).where(ActionItem.customer_id == source_id).values(customer_id=target_id))
        db.execute(update(QueueJob).where(QueueJob.customer_id == source_id).values(customer_id=target_id))

        source_diagram = db.execute(select(Diagram).where(Diagram.customer_id == source_id)).scalar_one_or_none()
        if source_diagram:
            target_diagram = db.execute(select(Diagram).where(Diagram.customer_id == target_id)).scalar_one_or_none()
            if target_diagram is None:
                db.execute(update(Diagram).where(Diagram.id == source_diagram.id).values(customer_id=target_id))
            else:
                next_version = (
                    db.execute(
                        select(func.coalesce(func.max(DiagramVersion.version), 0)).where(
                            DiagramVersion.diagram_id == target_diagram.id
                        )
                    ).scalar_one()
                    + 1
                )
                moved = db.execute(
                    select(DiagramVersion)
                    .where(DiagramVersion.diagram_id == source_diagram.id)
                    .order_by(DiagramVersion.version)
                ).scalars().all()
                for offset, version in enumerate(moved):
                    db.execute(
                        update(DiagramVersion)
                        .where(DiagramVersion.id == version.id)
                        .values(diagram_id=target_diagram.id, version=next_version + offset)
                    )
                db.execute(
                    update(DiagramSession)
                    .where(DiagramSession.diagram_id == source_diagram.id)
                    .values(diagram_id=target_diagram.id)
                )
                db.execute(delete(Diagram).where(Diagram.id == source_diagram.id))

        db.execute(update(Customer).where(Customer.id == target_id).values(updated_at=utcnow()))
        db.execute(delete(Customer).where(Customer.id == source_id))
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("customer_merged source_id=%s target_id=%s", source_id, target_id)
    db.expire_all()
    return db.get(Customer, target_id)


def delete_customer(db: Session, customer_id: int) -> Optional[List[str]]:
    """
    Delete a customer together with its diagram and action items.

    Session notes are detached, not deleted, so the session stays marked as
    processed. Returns the image paths that belonged to the deleted diagram
    versions, or None when the customer does not exist.
    """
    if not db.get(Customer, customer_id):
        return None
    image_paths = db.execute(
        select(DiagramVersion.image_path)
        .join(Diagram, Diagram.id == DiagramVersion.diagram_id)
        .where(Diagram.customer_id == customer_id, DiagramVersion.image_path.is_not(None))
    ).scalars().all()
    try:
        db.execute(delete(Customer).where(Customer.id == customer_id))
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.expire_all()
    logger.info("customer_deleted customer_id=%s images=%s", customer_id, len(image_paths))
    return list(image_paths)
