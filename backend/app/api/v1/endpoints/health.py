from fastapi import APIRouter, Depends

from app.api.deps import get_queue_worker, get_session_processor
from app.llm.gemini_client import get_llm_status
from app.services.queue_worker import QueueWorker
from app.services.session_processor import SessionProcessor

router = APIRouter()


@router.get("/health")
def health(
    processor: SessionProcessor = Depends(get_session_processor),
    worker: QueueWorker = Depends(get_queue_worker),
):
    transcript_ready = processor.transcript_source.is_ready()
    analyzer_ready = processor.analyzer.is_ready()
    return {
        "status": "ok" if transcript_ready and analyzer_ready else "degraded",
        "transcript_source_ready": transcript_ready,
        "analyzer_ready": analyzer_ready,
        "queue_running": worker.running,
        "llm": get_llm_status(),
    }
