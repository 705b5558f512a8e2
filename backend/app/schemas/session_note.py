from pydantic import BaseModel, Field
from typing import Any, Optional, List
from datetime import date, datetime


class SessionNote(BaseModel):
    id: int
    source_id: str
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    call_type: Optional[str] = None
    title: Optional[str] = None
    summary: Optional[str] = None
    action_items: List[Any] = Field(default_factory=list)
    components: List[Any] = Field(default_factory=list)
    gaps: List[Any] = Field(default_factory=list)
    skipped: bool = False
    session_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SessionNoteList(BaseModel):
    notes: List[SessionNote]
    total: int


class SkipRequest(BaseModel):
    source_id: str = Field(min_length=1)
    title: Optional[str] = None


class UnskipRequest(BaseModel):
    source_id: str = Field(min_length=1)


class SessionCustomerUpdate(BaseModel):
    source_id: str = Field(min_length=1)
    customer_name: str = Field(min_length=1)


class SessionCheck(BaseModel):
    source_id: str
    processed: bool
    skipped: bool
