"""Session ingestion API.

Serves the queue, session, customer, diagram and action-item endpoints and
runs the background queue worker inside the same process.
"""
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.v1.api import api_router
from app.core.config import Settings, get_settings
from app.core.errors import PipelineError
from app.db.session import SessionLocal, init_db
from app.llm.chains.analysis_chain import LlmAnalyzer
from app.services.diagram_renderer import MermaidRenderer
from app.services.job_store import JobRepository, SqlJobStore
from app.services.queue_worker import QueueWorker
from app.services.session_processor import Analyzer, Renderer, SessionProcessor, TranscriptSource
from app.services.transcript_source import HttpTranscriptSource

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    *,
    app_settings: Optional[Settings] = None,
    session_factory: Callable[[], Session] = SessionLocal,
    job_store: Optional[JobRepository] = None,
    transcript_source: Optional[TranscriptSource] = None,
    analyzer: Optional[Analyzer] = None,
    renderer: Optional[Renderer] = None,
    start_worker: Optional[bool] = None,
    auto_create_tables: Optional[bool] = None,
) -> FastAPI:
    cfg = app_settings or settings
    store = job_store or SqlJobStore(session_factory)
    renderer = renderer or MermaidRenderer(cfg)
    processor = SessionProcessor(
        session_factory,
        transcript_source or HttpTranscriptSource(cfg),
        analyzer or LlmAnalyzer(cfg),
        renderer,
        settings=cfg,
    )
    worker = QueueWorker(
        store,
        processor,
        poll_interval=cfg.queue_poll_interval_seconds,
        recent_limit=cfg.queue_recent_limit,
        prune_after=timedelta(hours=cfg.queue_prune_after_hours),
    )
    run_worker = cfg.queue_worker_enabled if start_worker is None else start_worker
    create_tables = cfg.db_auto_create if auto_create_tables is None else auto_create_tables

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if create_tables:
            init_db()
        if run_worker:
            worker.start()
        logger.info("api_ready env=%s worker=%s", cfg.env, run_worker)
        yield
        await worker.stop()
        logger.info("api_shutdown")

    app = FastAPI(title=cfg.project_name, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(request: Request, exc: PipelineError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    app.state.job_store = store
    app.state.session_processor = processor
    app.state.queue_worker = worker
    app.state.renderer = renderer
    app.include_router(api_router, prefix=cfg.api_v1_prefix)
    return app


app = create_app()
