from __future__ import annotations

from pydantic import BaseModel, Field
from typing import Any, Literal, Optional, List


CallType = Literal["technical", "partner", "non-technical"]


class ActionItemDraft(BaseModel):
    owner: str = "Unknown"
    text: str


class TranscriptAnalysis(BaseModel):
    call_type: CallType = "non-technical"
    customer_name: Optional[str] = None
    summary: str = "No summary available"
    action_items: List[ActionItemDraft] = Field(default_factory=list)
    components: Optional[List[Any]] = None
    gaps: Optional[List[Any]] = None
    diagram_source: Optional[str] = None


class ProcessRequest(BaseModel):
    source_id: str = Field(min_length=1)
    title: Optional[str] = None


class ProcessResult(BaseModel):
    call_type: CallType
    customer_name: str
    customer_id: int
    diagram_id: Optional[int] = None
    version: Optional[int] = None
    image_path: Optional[str] = None
    summary: str
    action_items: List[ActionItemDraft] = Field(default_factory=list)
    components: Optional[List[Any]] = None
    gaps: Optional[List[Any]] = None
    has_diagram: bool = False
