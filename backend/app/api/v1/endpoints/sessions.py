from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import get_session_processor
from app.db.session import get_db
from app.schemas.analysis import ProcessRequest, ProcessResult
from app.schemas.session_note import (
    SessionCheck,
    SessionCustomerUpdate,
    SessionNote,
    SessionNoteList,
    SkipRequest,
    UnskipRequest,
)
from app.services import customer_service, session_note_service
from app.services.session_processor import SessionProcessor

router = APIRouter()


@router.post("/process", response_model=ProcessResult)
async def process_session(
    payload: ProcessRequest,
    processor: SessionProcessor = Depends(get_session_processor),
):
    """Run the pipeline inline for one session (bypasses the queue)."""
    return await processor.process(payload.source_id.strip(), payload.title)


@router.get("/check", response_model=SessionCheck)
def check_session(source_id: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    return {
        "source_id": source_id,
        "processed": session_note_service.is_processed(db, source_id),
        "skipped": session_note_service.is_skipped(db, source_id),
    }


@router.get("/recent", response_model=SessionNoteList)
def recent_sessions(limit: int = Query(20, ge=1, le=200), db: Session = Depends(get_db)):
    return session_note_service.recent_notes(db, limit=limit)


@router.get("/note", response_model=SessionNote)
def get_session_note(source_id: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    note = session_note_service.get_note_detail(db, source_id)
    if not note:
        raise HTTPException(status_code=404, detail="Session not found")
    return note


@router.post("/skip", response_model=SessionNote)
def skip_session(payload: SkipRequest, db: Session = Depends(get_db)):
    session_note_service.skip_session(db, payload.source_id, payload.title)
    return session_note_service.get_note_detail(db, payload.source_id)


@router.post("/unskip")
def unskip_session(payload: UnskipRequest, db: Session = Depends(get_db)):
    removed = session_note_service.unskip_session(db, payload.source_id)
    return {"skipped": False, "removed": removed}


@router.post("/customer")
def update_session_customer(payload: SessionCustomerUpdate, db: Session = Depends(get_db)):
    if not session_note_service.get_note(db, payload.source_id):
        raise HTTPException(status_code=404, detail="Session not found")
    customer = customer_service.get_or_create_known_customer(db, payload.customer_name)
    session_note_service.update_note_customer(db, payload.source_id, customer.id)
    return {"customer_id": customer.id, "customer_name": customer.name}
