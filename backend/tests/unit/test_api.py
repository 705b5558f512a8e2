import pytest
from fastapi.testclient import TestClient

from app.db.session import get_db
from app.main import create_app
from app.services import customer_service, session_note_service

from tests.fakes import DIAGRAM, FakeAnalyzer, FakeRenderer, FakeTranscriptSource


@pytest.fixture
def client(settings, session_factory, job_store, renderer):
    app = create_app(
        app_settings=settings,
        session_factory=session_factory,
        job_store=job_store,
        transcript_source=FakeTranscriptSource(),
        analyzer=FakeAnalyzer(),
        renderer=renderer,
        start_worker=False,
        auto_create_tables=False,
    )

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client


def test_health_reports_collaborators(client) -> None:
    resp = client.get("/api/v1/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["transcript_source_ready"] is True
    assert body["analyzer_ready"] is True
    assert body["queue_running"] is False


def test_enqueue_and_reject_duplicate(client) -> None:
    resp = client.post("/api/v1/queue", json={"source_id": "sess-1", "title": "Kickoff"})

    assert resp.status_code == 201
    job = resp.json()["job"]
    assert job["status"] == "pending"
    assert job["source_id"] == "sess-1"

    dup = client.post("/api/v1/queue", json={"source_id": "sess-1"})
    assert dup.status_code == 409
    assert dup.json()["detail"] == "Session already queued"


def test_enqueue_rejects_processed_and_skipped_sessions(client, db) -> None:
    session_note_service.skip_session(db, "sess-skip")
    client.post("/api/v1/sessions/process", json={"source_id": "sess-done"})

    processed = client.post("/api/v1/queue", json={"source_id": "sess-done"})
    skipped = client.post("/api/v1/queue", json={"source_id": "sess-skip"})

    assert processed.status_code == 409
    assert processed.json()["detail"] == "Session already processed"
    assert skipped.status_code == 409
    assert skipped.json()["detail"] == "Session was skipped"


def test_bulk_enqueue_counts_each_outcome(client, db) -> None:
    customer = customer_service.create_customer(db, "Acme")
    for source_id in ("done-1", "done-2"):
        session_note_service.upsert_note(
            db,
            source_id=source_id,
            customer_id=customer.id,
            analysis=FakeAnalyzer().default,
            title=None,
            session_date=None,
        )

    resp = client.post(
        "/api/v1/queue/bulk",
        json={
            "sessions": [
                {"source_id": "done-1"},
                {"source_id": "new-1", "title": "One"},
                {"title": "no id"},
                {"source_id": "done-2"},
                {"source_id": "new-2"},
            ]
        },
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["queued"] == 2
    assert body["already_processed"] == 2
    assert body["already_queued"] == 0
    assert body["skipped"] == 0
    assert body["errors"] == [{"source_id": None, "error": "Missing source_id"}]
    assert body["total_requested"] == 5


def test_bulk_enqueue_honours_limit(client) -> None:
    resp = client.post(
        "/api/v1/queue/bulk",
        json={"sessions": [{"source_id": f"s-{n}"} for n in range(4)], "limit": 2},
    )

    assert resp.json()["queued"] == 2
    assert resp.json()["total_requested"] == 2


def test_cancel_job_status_mapping(client, job_store) -> None:
    pending = job_store.enqueue("a")
    running = job_store.enqueue("b")
    job_store.mark_processing(running.id)

    assert client.delete(f"/api/v1/queue/{pending.id}").json() == {"deleted": True}
    assert client.delete(f"/api/v1/queue/{pending.id}").status_code == 404

    resp = client.delete(f"/api/v1/queue/{running.id}")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Cannot cancel job with status: processing"


def test_retry_job_status_mapping(client, job_store) -> None:
    job = job_store.enqueue("a")

    assert client.post(f"/api/v1/queue/{job.id}/retry").status_code == 400
    assert client.post("/api/v1/queue/999/retry").status_code == 404

    job_store.mark_processing(job.id)
    job_store.mark_failed(job.id, "boom")
    resp = client.post(f"/api/v1/queue/{job.id}/retry")

    assert resp.status_code == 200
    assert resp.json()["job"]["id"] == job.id
    assert resp.json()["job"]["status"] == "pending"
    assert resp.json()["job"]["error"] is None


def test_queue_status_and_job_listing(client, job_store) -> None:
    job_store.enqueue("a")
    failed = job_store.enqueue("b")
    job_store.mark_processing(failed.id)
    job_store.mark_failed(failed.id, "boom")

    status = client.get("/api/v1/queue/status").json()
    assert status["running"] is False
    assert status["pending_count"] == 1
    assert status["processing"] is False
    assert [job["source_id"] for job in status["recent"]] == ["b"]

    jobs = client.get("/api/v1/queue/jobs", params={"status": "failed"}).json()
    assert jobs["total"] == 1
    assert jobs["jobs"][0]["error"] == "boom"


def test_process_inline_and_browse_results(client, renderer) -> None:
    resp = client.post("/api/v1/sessions/process", json={"source_id": "sess-1", "title": "Acme review"})

    assert resp.status_code == 200
    result = resp.json()
    assert result["has_diagram"] is True
    assert result["customer_name"] == "Acme"

    check = client.get("/api/v1/sessions/check", params={"source_id": "sess-1"}).json()
    assert check == {"source_id": "sess-1", "processed": True, "skipped": False}

    note = client.get("/api/v1/sessions/note", params={"source_id": "sess-1"}).json()
    assert note["customer_name"] == "Acme"
    assert note["call_type"] == "technical"

    detail = client.get(f"/api/v1/diagrams/{result['diagram_id']}").json()
    assert detail["latest_version"] == 1
    assert detail["versions"][0]["source"] == DIAGRAM

    items = client.get(f"/api/v1/customers/{result['customer_id']}/action-items").json()
    assert items["open_count"] == 1
    item_id = items["items"][0]["id"]
    toggled = client.post(f"/api/v1/action-items/{item_id}/toggle").json()
    assert toggled["completed"] is True

    again = client.post("/api/v1/sessions/process", json={"source_id": "sess-1"})
    assert again.status_code == 409


def test_process_reports_upstream_failure(settings, session_factory, job_store) -> None:
    app = create_app(
        app_settings=settings,
        session_factory=session_factory,
        job_store=job_store,
        transcript_source=FakeTranscriptSource(transcripts={"short": "hi"}),
        analyzer=FakeAnalyzer(ready=True),
        renderer=FakeRenderer(),
        start_worker=False,
        auto_create_tables=False,
    )
    with TestClient(app) as test_client:
        resp = test_client.post("/api/v1/sessions/process", json={"source_id": "short"})

    assert resp.status_code == 502
    assert resp.json()["detail"] == "Failed to fetch transcript or transcript too short"


def test_delete_diagram_keeps_action_items(client, renderer) -> None:
    result = client.post("/api/v1/sessions/process", json={"source_id": "sess-1"}).json()

    resp = client.delete(f"/api/v1/diagrams/{result['diagram_id']}")

    assert resp.json() == {"deleted": True, "action_items_preserved": True}
    assert renderer.deleted == [result["image_path"]]
    assert client.get(f"/api/v1/diagrams/{result['diagram_id']}").status_code == 404
    items = client.get(f"/api/v1/customers/{result['customer_id']}/action-items").json()
    assert items["open_count"] == 1


def test_push_diagram_and_skip_flow(client) -> None:
    pushed = client.post("/api/v1/diagrams", json={"customer_name": "Initech", "source": DIAGRAM})
    assert pushed.status_code == 201
    assert pushed.json()["version"] == 1

    skipped = client.post("/api/v1/sessions/skip", json={"source_id": "sess-7", "title": "Standup"})
    assert skipped.status_code == 200
    assert skipped.json()["skipped"] is True

    unskipped = client.post("/api/v1/sessions/unskip", json={"source_id": "sess-7"})
    assert unskipped.json() == {"skipped": False, "removed": True}
