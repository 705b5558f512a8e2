from pydantic import BaseModel
from typing import Optional, List
from datetime import date, datetime


class ActionItem(BaseModel):
    id: int
    customer_id: int
    session_note_id: Optional[int] = None
    owner: str
    text: str
    completed: bool = False
    completed_at: Optional[datetime] = None
    session_date: Optional[date] = None
    session_title: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ActionItemUpdate(BaseModel):
    owner: Optional[str] = None
    text: Optional[str] = None
    session_date: Optional[date] = None


class ActionItemMove(BaseModel):
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None


class ActionItemList(BaseModel):
    customer_id: int
    customer_name: str
    items: List[ActionItem]
    open_count: int
