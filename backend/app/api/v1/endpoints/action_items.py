from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.action_item import ActionItem, ActionItemMove, ActionItemUpdate
from app.services import action_item_service, customer_service

router = APIRouter()


@router.get("/{item_id}", response_model=ActionItem)
def get_action_item(item_id: int, db: Session = Depends(get_db)):
    item = action_item_service.get_action_item(db, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Action item not found")
    return item


@router.post("/{item_id}/toggle", response_model=ActionItem)
def toggle_action_item(item_id: int, db: Session = Depends(get_db)):
    item = action_item_service.toggle_action_item(db, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Action item not found")
    return item


@router.post("/{item_id}/move", response_model=ActionItem)
def move_action_item(item_id: int, payload: ActionItemMove, db: Session = Depends(get_db)):
    if not action_item_service.get_action_item(db, item_id):
        raise HTTPException(status_code=404, detail="Action item not found")

    target_id = payload.customer_id
    if not target_id and payload.customer_name and payload.customer_name.strip():
        target_id = customer_service.get_or_create_known_customer(db, payload.customer_name).id
    if not target_id:
        raise HTTPException(status_code=400, detail="customer_id or customer_name required")
    if not customer_service.get_customer(db, target_id):
        raise HTTPException(status_code=404, detail="Target customer not found")

    return action_item_service.move_action_item(db, item_id, target_id)


@router.put("/{item_id}", response_model=ActionItem)
def update_action_item(item_id: int, payload: ActionItemUpdate, db: Session = Depends(get_db)):
    item = action_item_service.update_action_item(
        db,
        item_id,
        owner=payload.owner,
        text=payload.text,
        session_date=payload.session_date,
    )
    if not item:
        raise HTTPException(status_code=404, detail="Action item not found")
    return item
