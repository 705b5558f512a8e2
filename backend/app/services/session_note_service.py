from __future__ import annotations

from datetime import date
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.errors import AlreadyProcessedError, SessionSkippedError
from app.models import Customer, SessionNote
from app.schemas.analysis import TranscriptAnalysis

logger = logging.getLogger(__name__)


def get_note(db: Session, source_id: str) -> Optional[SessionNote]:
    return db.execute(select(SessionNote).where(SessionNote.source_id == source_id)).scalar_one_or_none()


def is_processed(db: Session, source_id: str) -> bool:
    row = db.execute(
        select(SessionNote.id).where(SessionNote.source_id == source_id, SessionNote.skipped.is_(False))
    ).first()
    return row is not None


def is_skipped(db: Session, source_id: str) -> bool:
    row = db.execute(
        select(SessionNote.id).where(SessionNote.source_id == source_id, SessionNote.skipped.is_(True))
    ).first()
    return row is not None


def ensure_processable(db: Session, source_id: str) -> None:
    """Raise when the session already has a note or a skip placeholder."""
    if is_processed(db, source_id):
        raise AlreadyProcessedError(source_id)
    if is_skipped(db, source_id):
        raise SessionSkippedError(source_id)


def _note_values(
    customer_id: Optional[int],
    analysis: TranscriptAnalysis,
    title: Optional[str],
    session_date: Optional[date],
) -> Dict[str, Any]:
    return {
        "customer_id": customer_id,
        "call_type": analysis.call_type,
        "title": title,
        "summary": analysis.summary,
        "action_items": [item.model_dump() for item in analysis.action_items],
        "components": analysis.components or [],
        "gaps": analysis.gaps or [],
        "session_date": session_date,
        "updated_at": utcnow(),
    }


def upsert_note(
    db: Session,
    *,
    source_id: str,
    customer_id: Optional[int],
    analysis: TranscriptAnalysis,
    title: Optional[str],
    session_date: Optional[date],
    commit: bool = True,
) -> SessionNote:
    """
    Insert or overwrite the note for a session.

    Skip placeholders are immutable: the update only matches non-skipped rows
    and a skipped row raises SessionSkippedError. With commit=False the row is
    only flushed and the caller owns the transaction.
    """
    values = _note_values(customer_id, analysis, title, session_date)
    for _ in range(2):
        try:
            result = db.execute(
                update(SessionNote)
                .where(SessionNote.source_id == source_id, SessionNote.skipped.is_(False))
                .values(**values)
            )
            if result.rowcount == 0:
                if is_skipped(db, source_id):
                    db.rollback()
                    raise SessionSkippedError(source_id)
                db.add(SessionNote(source_id=source_id, skipped=False, created_at=utcnow(), **values))
            db.flush()
            if commit:
                db.commit()
        except IntegrityError:
            # Concurrent insert for the same source id; retry as an update
            db.rollback()
            continue
        except SessionSkippedError:
            raise
        except Exception:
            db.rollback()
            raise
        db.expire_all()
        return get_note(db, source_id)
    raise RuntimeError(f"Could not save session note for {source_id}")


def skip_session(db: Session, source_id: str, title: Optional[str] = None) -> SessionNote:
    """Mark a session as not relevant with a placeholder note."""
    if is_processed(db, source_id):
        raise AlreadyProcessedError(source_id)
    try:
        result = db.execute(
            update(SessionNote)
            .where(SessionNote.source_id == source_id, SessionNote.skipped.is_(True))
            .values(title=title, updated_at=utcnow())
        )
        if result.rowcount == 0:
            db.add(SessionNote(source_id=source_id, skipped=True, title=title))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AlreadyProcessedError(source_id)
    except Exception:
        db.rollback()
        raise
    db.expire_all()
    return get_note(db, source_id)


def unskip_session(db: Session, source_id: str) -> bool:
    """Delete the skip placeholder, making the session processable again."""
    try:
        result = db.execute(
            delete(SessionNote).where(SessionNote.source_id == source_id, SessionNote.skipped.is_(True))
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return result.rowcount > 0


def update_note_customer(db: Session, source_id: str, customer_id: int) -> bool:
    try:
        result = db.execute(
            update(SessionNote)
            .where(SessionNote.source_id == source_id)
            .values(customer_id=customer_id, updated_at=utcnow())
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return result.rowcount > 0


def note_to_dict(note: SessionNote, customer_name: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": note.id,
        "source_id": note.source_id,
        "customer_id": note.customer_id,
        "customer_name": customer_name,
        "call_type": note.call_type,
        "title": note.title,
        "summary": note.summary,
        "action_items": note.action_items or [],
        "components": note.components or [],
        "gaps": note.gaps or [],
        "skipped": bool(note.skipped),
        "session_date": note.session_date,
        "created_at": note.created_at,
        "updated_at": note.updated_at,
    }


def get_note_detail(db: Session, source_id: str) -> Optional[Dict[str, Any]]:
    row = db.execute(
        select(SessionNote, Customer.name)
        .outerjoin(Customer, Customer.id == SessionNote.customer_id)
        .where(SessionNote.source_id == source_id)
    ).first()
    if row is None:
        return None
    return note_to_dict(row[0], row[1])


def recent_notes(db: Session, limit: int = 20) -> Dict[str, Any]:
    rows = db.execute(
        select(SessionNote, Customer.name)
        .outerjoin(Customer, Customer.id == SessionNote.customer_id)
        .where(SessionNote.skipped.is_(False))
        .order_by(SessionNote.updated_at.desc(), SessionNote.id.desc())
        .limit(limit)
    ).all()
    notes = [note_to_dict(note, name) for note, name in rows]
    return {"notes": notes, "total": len(notes)}


def notes_for_customer(db: Session, customer_id: int) -> List[Dict[str, Any]]:
    rows = db.execute(
        select(SessionNote)
        .where(SessionNote.customer_id == customer_id)
        .order_by(SessionNote.updated_at.desc(), SessionNote.id.desc())
    ).scalars().all()
    return [note_to_dict(note) for note in rows]
