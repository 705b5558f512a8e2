import pytest
from sqlalchemy import select

from app.core.errors import (
    AlreadyProcessedError,
    AnalysisError,
    InvalidDiagramError,
    NotConfiguredError,
    SessionSkippedError,
    TranscriptTooShortError,
)
from app.models.action_item import ActionItem
from app.models.customer import Customer
from app.models.diagram import DiagramVersion
from app.models.session_note import SessionNote
from app.schemas.analysis import ActionItemDraft, TranscriptAnalysis
from app.services import action_item_service, customer_service, diagram_service, session_note_service
from app.services.session_processor import MatchedCustomer, NewCustomer, SessionProcessor, normalize_owner

from tests.fakes import DIAGRAM, FakeAnalyzer, FakeRenderer, FakeTranscriptSource


def _processor(session_factory, settings, clock, source=None, analyzer=None, renderer=None) -> SessionProcessor:
    return SessionProcessor(
        session_factory,
        source or FakeTranscriptSource(),
        analyzer or FakeAnalyzer(),
        renderer or FakeRenderer(),
        settings=settings,
        clock=clock,
    )


def test_normalize_owner_maps_aliases() -> None:
    aliases = {"steven": "Stephen", "Steve": "Stephen"}

    assert normalize_owner("Steven", aliases) == "Stephen"
    assert normalize_owner("steve ", aliases) == "Stephen"
    assert normalize_owner("Maria", aliases) == "Maria"
    assert normalize_owner("", aliases) == "Unknown"
    assert normalize_owner(None, aliases) == "Unknown"


@pytest.mark.asyncio
async def test_technical_session_creates_diagram_note_and_action_items(session_factory, settings, clock, db) -> None:
    renderer = FakeRenderer()
    processor = _processor(session_factory, settings, clock, renderer=renderer)

    result = await processor.process("sess-1", "Acme architecture review")

    assert result.has_diagram is True
    assert result.customer_name == "Acme"
    assert result.version == 1
    assert result.image_path == f"diagram-{result.diagram_id}-v1.png"
    assert [item.owner for item in result.action_items] == ["Stephen"]

    note = session_note_service.get_note(db, "sess-1")
    assert note.customer_id == result.customer_id
    assert note.call_type == "technical"
    assert note.session_date == clock.now.date()
    items = action_item_service.list_for_customer(db, result.customer_id)
    assert [(i.owner, i.text) for i in items] == [("Stephen", "Send the sizing doc")]
    assert diagram_service.session_has_diagram(db, "sess-1")
    assert diagram_service.get_latest_version(db, result.diagram_id).image_path == result.image_path


@pytest.mark.asyncio
async def test_second_session_for_same_customer_appends_version(session_factory, settings, clock, db) -> None:
    processor = _processor(session_factory, settings, clock)

    first = await processor.process("sess-1", "Review 1")
    second = await processor.process("sess-2", "Review 2")

    assert second.customer_id == first.customer_id
    assert second.diagram_id == first.diagram_id
    assert [v.version for v in diagram_service.list_versions(db, first.diagram_id)] == [2, 1]


@pytest.mark.asyncio
async def test_invalid_diagram_still_saves_note_and_action_items(session_factory, settings, clock, db) -> None:
    processor = _processor(session_factory, settings, clock, renderer=FakeRenderer(valid=False))

    result = await processor.process("sess-1", "Acme review")

    assert result.has_diagram is False
    assert result.diagram_id is None
    note = session_note_service.get_note(db, "sess-1")
    assert note is not None
    assert note.customer_id == result.customer_id
    assert action_item_service.open_count(db, result.customer_id) == 1
    assert db.execute(select(DiagramVersion)).scalars().all() == []


@pytest.mark.asyncio
async def test_render_failure_keeps_version_without_image(session_factory, settings, clock, db) -> None:
    processor = _processor(session_factory, settings, clock, renderer=FakeRenderer(fail_render=True))

    result = await processor.process("sess-1", "Acme review")

    assert result.has_diagram is True
    assert result.image_path is None
    version = diagram_service.get_latest_version(db, result.diagram_id)
    assert version.version == 1
    assert version.source == DIAGRAM
    assert version.image_path is None


@pytest.mark.asyncio
async def test_unexpected_renderer_error_does_not_abort_session(session_factory, settings, clock, db) -> None:
    renderer = FakeRenderer(render_error=RuntimeError("puppeteer crashed"))
    processor = _processor(session_factory, settings, clock, renderer=renderer)

    result = await processor.process("sess-r", "Acme review")

    assert result.has_diagram is True
    assert result.image_path is None
    assert session_note_service.get_note(db, "sess-r").customer_id == result.customer_id
    assert len(action_item_service.list_for_customer(db, result.customer_id)) == 1
    versions = db.execute(select(DiagramVersion).where(DiagramVersion.diagram_id == result.diagram_id)).scalars().all()
    assert [v.version for v in versions] == [1]
    assert versions[0].image_path is None


@pytest.mark.asyncio
async def test_non_technical_session_has_no_diagram(session_factory, settings, clock, db) -> None:
    analyzer = FakeAnalyzer()
    analyzer.default = analyzer.default.model_copy(update={"call_type": "partner"})
    processor = _processor(session_factory, settings, clock, analyzer=analyzer)

    result = await processor.process("sess-1", "Partner sync")

    assert result.call_type == "partner"
    assert result.has_diagram is False
    assert session_note_service.get_note(db, "sess-1").components == ["API", "Postgres"]


@pytest.mark.asyncio
async def test_diagram_version_survives_later_failure(session_factory, settings, clock, db, monkeypatch) -> None:
    processor = _processor(session_factory, settings, clock)

    def broken(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(action_item_service, "replace_for_note", broken)
    with pytest.raises(RuntimeError):
        await processor.process("sess-1", "Acme review")

    customer = customer_service.find_known_customer(db, "Acme")
    diagram = diagram_service.get_diagram_by_customer(db, customer.id)
    assert [v.version for v in diagram_service.list_versions(db, diagram.id)] == [1]
    # Note and action items roll back together, so the session can be retried
    assert session_note_service.get_note(db, "sess-1") is None

    monkeypatch.undo()
    result = await processor.process("sess-1", "Acme review")

    assert result.version == 2
    assert session_note_service.is_processed(db, "sess-1")


@pytest.mark.asyncio
async def test_unknown_customers_are_never_merged(session_factory, settings, clock, db) -> None:
    analyzer = FakeAnalyzer()
    analyzer.default = analyzer.default.model_copy(update={"customer_name": None})
    processor = _processor(session_factory, settings, clock, analyzer=analyzer)

    first = await processor.process("sess-1", "Call one")
    second = await processor.process("sess-2", "Call two")

    assert first.customer_id != second.customer_id
    assert first.diagram_id != second.diagram_id
    unknown = db.execute(select(Customer).where(Customer.is_unknown.is_(True))).scalars().all()
    assert len(unknown) == 2


def test_resolve_customer_prefers_known_match(session_factory, settings, clock, db) -> None:
    processor = _processor(session_factory, settings, clock)
    acme = customer_service.create_customer(db, "Acme Corp")
    customer_service.create_customer(db, "Unknown Customer", is_unknown=True)

    assert processor.resolve_customer(db, "Acme") == MatchedCustomer(customer_id=acme.id, name="Acme Corp")
    assert processor.resolve_customer(db, "Globex") == NewCustomer(name="Globex", is_unknown=False)
    assert processor.resolve_customer(db, "  ") == NewCustomer(name="Unknown Customer", is_unknown=True)


@pytest.mark.asyncio
async def test_short_transcript_is_rejected(session_factory, settings, clock, db) -> None:
    source = FakeTranscriptSource(transcripts={"sess-1": "too short"})
    processor = _processor(session_factory, settings, clock, source=source)

    with pytest.raises(TranscriptTooShortError):
        await processor.process("sess-1")

    assert session_note_service.get_note(db, "sess-1") is None


@pytest.mark.asyncio
async def test_unconfigured_services_fail_before_fetch(session_factory, settings, clock) -> None:
    source = FakeTranscriptSource(ready=False)
    processor = _processor(session_factory, settings, clock, source=source)

    with pytest.raises(NotConfiguredError):
        await processor.process("sess-1")
    assert source.calls == []

    processor = _processor(session_factory, settings, clock, analyzer=FakeAnalyzer(ready=False))
    with pytest.raises(NotConfiguredError, match="LLM analyzer not configured"):
        await processor.process("sess-1")


@pytest.mark.asyncio
async def test_processed_and_skipped_sessions_are_rejected(session_factory, settings, clock, db) -> None:
    processor = _processor(session_factory, settings, clock)
    await processor.process("sess-1")
    session_note_service.skip_session(db, "sess-2", "Internal standup")

    with pytest.raises(AlreadyProcessedError):
        await processor.process("sess-1")
    with pytest.raises(SessionSkippedError):
        await processor.process("sess-2")


@pytest.mark.asyncio
async def test_analysis_error_propagates_without_writes(session_factory, settings, clock, db) -> None:
    analyzer = FakeAnalyzer(analyses={"Bad": AnalysisError("No response from LLM")})
    processor = _processor(session_factory, settings, clock, analyzer=analyzer)

    with pytest.raises(AnalysisError):
        await processor.process("sess-1", "Bad")

    assert db.execute(select(Customer)).scalars().all() == []
    assert db.execute(select(SessionNote)).scalars().all() == []


@pytest.mark.asyncio
async def test_reprocessing_replaces_action_items(session_factory, settings, clock, db) -> None:
    processor = _processor(session_factory, settings, clock)
    result = await processor.process("sess-1", "Acme review")
    analysis = TranscriptAnalysis(
        call_type="technical",
        customer_name="Acme",
        action_items=[ActionItemDraft(owner="Maria", text="Book follow-up"), ActionItemDraft(text="Share notes")],
    )

    processor.save_session("sess-1", "Acme review", result.customer_id, analysis)

    rows = db.execute(select(ActionItem).order_by(ActionItem.id)).scalars().all()
    assert [(r.owner, r.text) for r in rows] == [("Maria", "Book follow-up"), ("Unknown", "Share notes")]


@pytest.mark.asyncio
async def test_push_diagram_appends_version_and_guards_sessions(session_factory, settings, clock, db) -> None:
    processor = _processor(session_factory, settings, clock)

    outcome = await processor.push_diagram(customer_name="Initech", source=DIAGRAM, source_id="manual-1")

    assert outcome.version == 1
    assert customer_service.find_known_customer(db, "Initech").id == outcome.customer_id
    with pytest.raises(AlreadyProcessedError):
        await processor.push_diagram(customer_name="Initech", source=DIAGRAM, source_id="manual-1")

    invalid = _processor(session_factory, settings, clock, renderer=FakeRenderer(valid=False))
    with pytest.raises(InvalidDiagramError):
        await invalid.push_diagram(customer_name="Initech", source="graph ???")
