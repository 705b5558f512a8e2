from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class DiagramVersion(BaseModel):
    id: int
    diagram_id: int
    version: int
    source: str
    image_path: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DiagramSessionLink(BaseModel):
    source_id: str
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DiagramSummary(BaseModel):
    id: int
    customer_id: int
    customer_name: str
    customer_is_unknown: bool = False
    latest_version: Optional[int] = None
    image_path: Optional[str] = None
    version_created_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class DiagramList(BaseModel):
    diagrams: List[DiagramSummary]
    total: int


class DiagramDetail(DiagramSummary):
    versions: List[DiagramVersion] = Field(default_factory=list)
    sessions: List[DiagramSessionLink] = Field(default_factory=list)


class DiagramPush(BaseModel):
    """Manual diagram push (e.g. from an automation tool)."""

    customer_name: str = Field(min_length=1)
    source: str = Field(min_length=1)
    source_id: Optional[str] = None
    notes: Optional[str] = None
    is_unknown: bool = False


class DiagramPushResult(BaseModel):
    customer_id: int
    diagram_id: int
    version_id: int
    version: int
    image_path: Optional[str] = None
