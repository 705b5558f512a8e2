import os
from datetime import datetime

# Configure before app modules read settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("QUEUE_WORKER_ENABLED", "false")
os.environ.setdefault("DB_AUTO_CREATE", "false")

import pytest
from sqlalchemy.orm import sessionmaker

from app.core.config import Settings
from app.db.session import build_engine, init_db
from app.services.job_store import SqlJobStore

from tests.fakes import FIXED_NOW, FakeAnalyzer, FakeRenderer, FakeTranscriptSource


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        queue_worker_enabled=False,
        db_auto_create=False,
        min_transcript_length=100,
        transcript_sessions_cache_path="/nonexistent/sessions.json",
    )


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock(FIXED_NOW)


@pytest.fixture
def job_store(session_factory, clock) -> SqlJobStore:
    return SqlJobStore(session_factory, clock=clock)


@pytest.fixture
def transcript_source() -> FakeTranscriptSource:
    return FakeTranscriptSource()


@pytest.fixture
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()
