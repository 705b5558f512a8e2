from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.errors import RenderError
from app.schemas.analysis import ActionItemDraft, TranscriptAnalysis

FIXED_NOW = datetime(2026, 3, 2, 9, 30, 0)

TRANSCRIPT = "Speaker 1: we walked through the ingestion cluster and the cache layer. " * 5

DIAGRAM = "flowchart LR\n  api[API] --> db[(Postgres)]"


class FakeTranscriptSource:
    def __init__(self, transcripts: Optional[Dict[str, str]] = None, ready: bool = True):
        self.transcripts = transcripts or {}
        self.ready = ready
        self.calls: List[str] = []

    def is_ready(self) -> bool:
        return self.ready

    async def fetch(self, source_id: str) -> str:
        self.calls.append(source_id)
        return self.transcripts.get(source_id, TRANSCRIPT)


class FakeAnalyzer:
    def __init__(self, analyses: Optional[Dict[str, Any]] = None, ready: bool = True):
        self.analyses = analyses or {}
        self.ready = ready
        self.default = TranscriptAnalysis(
            call_type="technical",
            customer_name="Acme",
            summary="Reviewed the ingestion architecture.",
            action_items=[ActionItemDraft(owner="steven", text="Send the sizing doc")],
            components=["API", "Postgres"],
            gaps=["No DR plan"],
            diagram_source=DIAGRAM,
        )

    def is_ready(self) -> bool:
        return self.ready

    async def analyze(self, transcript: str, title: Optional[str] = None) -> TranscriptAnalysis:
        outcome = self.analyses.get(title, self.default)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeRenderer:
    def __init__(self, valid: bool = True, fail_render: bool = False, render_error: Optional[Exception] = None):
        self.valid = valid
        self.fail_render = fail_render
        self.render_error = render_error
        self.rendered: List[str] = []
        self.deleted: List[str] = []

    async def validate(self, source: str) -> Dict[str, Any]:
        if self.valid:
            return {"valid": True, "error": None}
        return {"valid": False, "error": "Parse error on line 2"}

    async def render(self, source: str, diagram_id: int, version: int) -> str:
        if self.render_error is not None:
            raise self.render_error
        if self.fail_render:
            raise RenderError("mmdc exited with code 1")
        filename = f"diagram-{diagram_id}-v{version}.png"
        self.rendered.append(filename)
        return filename

    def image_exists(self, filename: Optional[str]) -> bool:
        return bool(filename) and filename in self.rendered

    def image_path(self, filename: str):
        return filename

    def delete_image(self, filename: Optional[str]) -> bool:
        if filename:
            self.deleted.append(filename)
        return True
