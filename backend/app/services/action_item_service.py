from __future__ import annotations

from datetime import date
import logging
from typing import Iterable, List, Optional

from sqlalchemy import case, delete, func, literal, not_, null, select, update
from sqlalchemy.orm import Session
from sqlalchemy.types import DateTime

from app.core.clock import utcnow
from app.models import ActionItem
from app.schemas.analysis import ActionItemDraft

logger = logging.getLogger(__name__)


def replace_for_note(
    db: Session,
    *,
    session_note_id: int,
    customer_id: int,
    items: Iterable[ActionItemDraft],
    session_date: Optional[date],
    session_title: Optional[str],
) -> List[int]:
    """Replace every action item produced by a session note with `items`."""
    now = utcnow()
    created: List[ActionItem] = []
    try:
        db.execute(delete(ActionItem).where(ActionItem.session_note_id == session_note_id))
        for item in items:
            row = ActionItem(
                session_note_id=session_note_id,
                customer_id=customer_id,
                owner=item.owner or "Unknown",
                text=item.text,
                completed=False,
                session_date=session_date,
                session_title=session_title,
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            created.append(row)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return [row.id for row in created]


def get_action_item(db: Session, item_id: int) -> Optional[ActionItem]:
    return db.get(ActionItem, item_id)


def list_for_customer(db: Session, customer_id: int, include_completed: bool = True) -> List[ActionItem]:
    stmt = select(ActionItem).where(ActionItem.customer_id == customer_id)
    if include_completed:
        stmt = stmt.order_by(
            ActionItem.completed.asc(),
            ActionItem.session_date.desc(),
            ActionItem.created_at.desc(),
            ActionItem.id.desc(),
        )
    else:
        stmt = stmt.where(ActionItem.completed.is_(False)).order_by(
            ActionItem.session_date.desc(),
            ActionItem.created_at.desc(),
            ActionItem.id.desc(),
        )
    return list(db.execute(stmt).scalars())


def open_count(db: Session, customer_id: int) -> int:
    return int(
        db.execute(
            select(func.count(ActionItem.id)).where(
                ActionItem.customer_id == customer_id, ActionItem.completed.is_(False)
            )
        ).scalar_one()
    )


def _refetch(db: Session, item_id: int) -> Optional[ActionItem]:
    db.expire_all()
    return db.get(ActionItem, item_id)


def toggle_action_item(db: Session, item_id: int) -> Optional[ActionItem]:
    """Flip completion; completed_at is set when completing and cleared when reopening."""
    now = utcnow()
    try:
        # SET expressions read the pre-update row
        result = db.execute(
            update(ActionItem)
            .where(ActionItem.id == item_id)
            .values(
                completed=not_(ActionItem.completed),
                completed_at=case(
                    (ActionItem.completed.is_(True), null()),
                    else_=literal(now, DateTime),
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    if result.rowcount == 0:
        return None
    return _refetch(db, item_id)


def move_action_item(db: Session, item_id: int, customer_id: int) -> Optional[ActionItem]:
    """Reassign an item to another customer; its originating session note is untouched."""
    try:
        result = db.execute(
            update(ActionItem)
            .where(ActionItem.id == item_id)
            .values(customer_id=customer_id, updated_at=utcnow())
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    if result.rowcount == 0:
        return None
    return _refetch(db, item_id)


def update_action_item(
    db: Session,
    item_id: int,
    *,
    owner: Optional[str] = None,
    text: Optional[str] = None,
    session_date: Optional[date] = None,
) -> Optional[ActionItem]:
    values = {}
    if owner:
        values["owner"] = owner.strip()
    if text:
        values["text"] = text.strip()
    if session_date is not None:
        values["session_date"] = session_date
    if not values:
        return db.get(ActionItem, item_id)
    values["updated_at"] = utcnow()
    try:
        result = db.execute(update(ActionItem).where(ActionItem.id == item_id).values(**values))
        db.commit()
    except Exception:
        db.rollback()
        raise
    if result.rowcount == 0:
        return None
    return _refetch(db, item_id)
