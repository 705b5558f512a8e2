"""
Session processing pipeline: transcript -> analysis -> diagram / notes / action items.

The pipeline knows nothing about the queue. Each persistence step commits on
its own, so a diagram version written in the diagram step survives a failure
in a later step. Collaborators (transcript source, analyzer, renderer) are
injected and own their timeouts.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
from typing import Any, Callable, Dict, Optional, Protocol, Tuple, Union

from sqlalchemy.orm import Session

from app.core.clock import Clock, utcnow
from app.core.config import Settings, get_settings
from app.core.errors import (
    AlreadyProcessedError,
    InvalidDiagramError,
    NotConfiguredError,
    TranscriptTooShortError,
)
from app.schemas.analysis import ActionItemDraft, ProcessResult, TranscriptAnalysis
from app.services import action_item_service, customer_service, diagram_service, session_note_service

logger = logging.getLogger(__name__)


class TranscriptSource(Protocol):
    def is_ready(self) -> bool: ...

    async def fetch(self, source_id: str) -> str: ...


class Analyzer(Protocol):
    def is_ready(self) -> bool: ...

    async def analyze(self, transcript: str, title: Optional[str] = None) -> TranscriptAnalysis: ...


class Renderer(Protocol):
    async def validate(self, source: str) -> Dict[str, Any]: ...

    async def render(self, source: str, diagram_id: int, version: int) -> str: ...


@dataclass(frozen=True)
class NewCustomer:
    name: str
    is_unknown: bool


@dataclass(frozen=True)
class MatchedCustomer:
    customer_id: int
    name: str


CustomerResolution = Union[NewCustomer, MatchedCustomer]


@dataclass
class DiagramOutcome:
    customer_id: int
    customer_name: str
    diagram_id: int
    version_id: int
    version: int
    image_path: Optional[str] = None


def normalize_owner(owner: Optional[str], aliases: Dict[str, str]) -> str:
    """Map transcription spelling variants of an owner onto one canonical label."""
    value = (owner or "").strip()
    if not value:
        return "Unknown"
    lowered = {alias.strip().lower(): canonical for alias, canonical in (aliases or {}).items()}
    return lowered.get(value.lower(), value)


class SessionProcessor:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        transcript_source: TranscriptSource,
        analyzer: Analyzer,
        renderer: Renderer,
        settings: Optional[Settings] = None,
        clock: Clock = utcnow,
    ):
        self._session_factory = session_factory
        self.transcript_source = transcript_source
        self.analyzer = analyzer
        self.renderer = renderer
        self.settings = settings or get_settings()
        self._clock = clock

    def _run(self, fn: Callable[[Session], Any]) -> Any:
        db = self._session_factory()
        try:
            return fn(db)
        finally:
            db.close()

    # ---- gates ---------------------------------------------------------

    def validate_session(self, source_id: str) -> None:
        self._run(lambda db: session_note_service.ensure_processable(db, source_id))

    def validate_services(self) -> None:
        if not self.transcript_source.is_ready():
            raise NotConfiguredError("Transcript source not authenticated")
        if not self.analyzer.is_ready():
            raise NotConfiguredError("LLM analyzer not configured")

    async def fetch_transcript(self, source_id: str) -> str:
        logger.info("pipeline_fetch source_id=%s", source_id)
        transcript = await self.transcript_source.fetch(source_id)
        length = len(transcript or "")
        if length < self.settings.min_transcript_length:
            raise TranscriptTooShortError(length)
        return transcript

    async def analyze(self, transcript: str, title: Optional[str]) -> TranscriptAnalysis:
        logger.info("pipeline_analyze chars=%s", len(transcript))
        analysis = await self.analyzer.analyze(transcript, title)
        aliases = self.settings.owner_aliases
        items = [
            ActionItemDraft(owner=normalize_owner(item.owner, aliases), text=item.text)
            for item in analysis.action_items
        ]
        return analysis.model_copy(update={"action_items": items})

    # ---- customers -----------------------------------------------------

    def resolve_customer(self, db: Session, customer_name: Optional[str]) -> CustomerResolution:
        name = (customer_name or "").strip()
        if not name:
            # Unknown customers are never matched against each other
            return NewCustomer(name=customer_service.UNKNOWN_CUSTOMER_NAME, is_unknown=True)
        match = customer_service.find_known_customer(db, name)
        if match:
            return MatchedCustomer(customer_id=match.id, name=match.name)
        return NewCustomer(name=name, is_unknown=False)

    def _materialize_customer(self, db: Session, customer_name: Optional[str]) -> Tuple[int, str]:
        resolution = self.resolve_customer(db, customer_name)
        if isinstance(resolution, MatchedCustomer):
            return resolution.customer_id, resolution.name
        customer = customer_service.create_customer(db, resolution.name, is_unknown=resolution.is_unknown)
        logger.info("customer_created customer_id=%s unknown=%s", customer.id, resolution.is_unknown)
        return customer.id, customer.name

    # ---- diagram -------------------------------------------------------

    async def _render_version(self, outcome: DiagramOutcome, source: str) -> DiagramOutcome:
        try:
            image_path = await self.renderer.render(source, outcome.diagram_id, outcome.version)
        except Exception as exc:
            # The version row stays without an image
            logger.warning(
                "diagram_render_failed diagram_id=%s version=%s error=%s",
                outcome.diagram_id,
                outcome.version,
                exc,
                exc_info=True,
            )
            return outcome
        self._run(lambda db: diagram_service.set_version_image(db, outcome.version_id, image_path))
        outcome.image_path = image_path
        return outcome

    async def create_diagram(self, source_id: str, analysis: TranscriptAnalysis) -> Optional[DiagramOutcome]:
        """Validate, persist and render the diagram. Invalid syntax and render failures are not fatal."""
        if analysis.call_type not in self.settings.diagram_call_types or not analysis.diagram_source:
            return None

        validation = await self.renderer.validate(analysis.diagram_source)
        if not validation.get("valid"):
            logger.warning("diagram_invalid source_id=%s error=%s", source_id, validation.get("error"))
            return None

        notes = f"Extracted from session: {source_id}\n\nSummary: {analysis.summary}"

        def _persist(db: Session) -> DiagramOutcome:
            customer_id, customer_name = self._materialize_customer(db, analysis.customer_name)
            diagram = diagram_service.get_or_create_diagram(db, customer_id)
            version = diagram_service.append_version(
                db, diagram_id=diagram.id, source=analysis.diagram_source, notes=notes
            )
            diagram_service.record_session(db, diagram.id, source_id)
            customer_service.touch_customer(db, customer_id)
            return DiagramOutcome(
                customer_id=customer_id,
                customer_name=customer_name,
                diagram_id=diagram.id,
                version_id=version.id,
                version=version.version,
            )

        outcome = self._run(_persist)
        logger.info(
            "diagram_version_saved source_id=%s diagram_id=%s version=%s",
            source_id,
            outcome.diagram_id,
            outcome.version,
        )

        return await self._render_version(outcome, analysis.diagram_source)

    async def push_diagram(
        self,
        *,
        customer_name: str,
        source: str,
        source_id: Optional[str] = None,
        notes: Optional[str] = None,
        is_unknown: bool = False,
    ) -> DiagramOutcome:
        """Append a hand-supplied diagram version for a customer (get-or-create by name)."""
        if source_id and self._run(lambda db: diagram_service.session_has_diagram(db, source_id)):
            raise AlreadyProcessedError(source_id)
        validation = await self.renderer.validate(source)
        if not validation.get("valid"):
            raise InvalidDiagramError(f"Invalid Mermaid syntax: {validation.get('error')}")

        def _persist(db: Session) -> DiagramOutcome:
            if is_unknown:
                customer = customer_service.create_customer(db, customer_name, is_unknown=True)
            else:
                customer = customer_service.get_or_create_known_customer(db, customer_name)
            diagram = diagram_service.get_or_create_diagram(db, customer.id)
            version = diagram_service.append_version(db, diagram_id=diagram.id, source=source, notes=notes)
            if source_id:
                diagram_service.record_session(db, diagram.id, source_id)
            customer_service.touch_customer(db, customer.id)
            return DiagramOutcome(
                customer_id=customer.id,
                customer_name=customer.name,
                diagram_id=diagram.id,
                version_id=version.id,
                version=version.version,
            )

        outcome = self._run(_persist)
        return await self._render_version(outcome, source)

    # ---- notes ---------------------------------------------------------

    def session_date(self, source_id: str) -> date:
        lookup = getattr(self.transcript_source, "lookup_session_date", None)
        found = lookup(source_id) if lookup else None
        return found or self._clock().date()

    def save_session(
        self,
        source_id: str,
        title: Optional[str],
        customer_id: int,
        analysis: TranscriptAnalysis,
    ) -> int:
        session_date = self.session_date(source_id)

        def _persist(db: Session) -> int:
            note = session_note_service.upsert_note(
                db,
                source_id=source_id,
                customer_id=customer_id,
                analysis=analysis,
                title=title,
                session_date=session_date,
                commit=False,
            )
            # Note and action items land in one commit
            action_item_service.replace_for_note(
                db,
                session_note_id=note.id,
                customer_id=customer_id,
                items=analysis.action_items,
                session_date=session_date,
                session_title=title,
            )
            return note.id

        return self._run(_persist)

    # ---- pipeline ------------------------------------------------------

    async def process(self, source_id: str, title: Optional[str] = None) -> ProcessResult:
        self.validate_session(source_id)
        self.validate_services()

        transcript = await self.fetch_transcript(source_id)
        analysis = await self.analyze(transcript, title)

        diagram = await self.create_diagram(source_id, analysis)
        if diagram is None:
            analysis = analysis.model_copy(update={"diagram_source": None})
            customer_id, customer_name = self._run(
                lambda db: self._materialize_customer(db, analysis.customer_name)
            )
        else:
            customer_id, customer_name = diagram.customer_id, diagram.customer_name

        self.save_session(source_id, title, customer_id, analysis)
        logger.info(
            "pipeline_complete source_id=%s call_type=%s customer_id=%s has_diagram=%s",
            source_id,
            analysis.call_type,
            customer_id,
            diagram is not None,
        )

        return ProcessResult(
            call_type=analysis.call_type,
            customer_name=customer_name,
            customer_id=customer_id,
            diagram_id=diagram.diagram_id if diagram else None,
            version=diagram.version if diagram else None,
            image_path=diagram.image_path if diagram else None,
            summary=analysis.summary,
            action_items=analysis.action_items,
            components=analysis.components,
            gaps=analysis.gaps,
            has_diagram=diagram is not None,
        )
