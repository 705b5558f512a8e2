from fastapi import Request

from app.services.diagram_renderer import MermaidRenderer
from app.services.job_store import JobRepository
from app.services.queue_worker import QueueWorker
from app.services.session_processor import SessionProcessor


def get_job_store(request: Request) -> JobRepository:
    return request.app.state.job_store


def get_queue_worker(request: Request) -> QueueWorker:
    return request.app.state.queue_worker


def get_session_processor(request: Request) -> SessionProcessor:
    return request.app.state.session_processor


def get_renderer(request: Request) -> MermaidRenderer:
    return request.app.state.renderer
