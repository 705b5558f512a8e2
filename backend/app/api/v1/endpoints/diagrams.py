from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.api.deps import get_renderer, get_session_processor
from app.db.session import get_db
from app.schemas.diagram import DiagramDetail, DiagramList, DiagramPush, DiagramPushResult, DiagramVersion
from app.services import diagram_service
from app.services.diagram_renderer import MermaidRenderer
from app.services.session_processor import SessionProcessor

router = APIRouter()


@router.get("", response_model=DiagramList)
def list_diagrams(db: Session = Depends(get_db)):
    return diagram_service.list_diagrams(db)


@router.post("", response_model=DiagramPushResult, status_code=status.HTTP_201_CREATED)
async def push_diagram(
    payload: DiagramPush,
    processor: SessionProcessor = Depends(get_session_processor),
):
    outcome = await processor.push_diagram(
        customer_name=payload.customer_name.strip(),
        source=payload.source,
        source_id=payload.source_id,
        notes=payload.notes,
        is_unknown=payload.is_unknown,
    )
    return {
        "customer_id": outcome.customer_id,
        "diagram_id": outcome.diagram_id,
        "version_id": outcome.version_id,
        "version": outcome.version,
        "image_path": outcome.image_path,
    }


@router.get("/{diagram_id}", response_model=DiagramDetail)
def get_diagram(diagram_id: int, db: Session = Depends(get_db)):
    detail = diagram_service.get_diagram_detail(db, diagram_id)
    if not detail:
        raise HTTPException(status_code=404, detail="Diagram not found")
    return detail


@router.get("/{diagram_id}/latest", response_model=DiagramVersion)
def get_latest_version(diagram_id: int, db: Session = Depends(get_db)):
    if not diagram_service.get_diagram(db, diagram_id):
        raise HTTPException(status_code=404, detail="Diagram not found")
    version = diagram_service.get_latest_version(db, diagram_id)
    if not version:
        raise HTTPException(status_code=404, detail="No versions found")
    return version


@router.get("/{diagram_id}/image")
def get_diagram_image(
    diagram_id: int,
    db: Session = Depends(get_db),
    renderer: MermaidRenderer = Depends(get_renderer),
):
    if not diagram_service.get_diagram(db, diagram_id):
        raise HTTPException(status_code=404, detail="Diagram not found")
    version = diagram_service.get_latest_version(db, diagram_id)
    if not version or not version.image_path:
        raise HTTPException(status_code=404, detail="No image available")
    if not renderer.image_exists(version.image_path):
        raise HTTPException(status_code=404, detail="Image file not found")
    return FileResponse(renderer.image_path(version.image_path), media_type="image/png")


@router.delete("/{diagram_id}")
def delete_diagram(
    diagram_id: int,
    db: Session = Depends(get_db),
    renderer: MermaidRenderer = Depends(get_renderer),
):
    """Delete a diagram and its versions; session notes and action items are kept."""
    image_paths = diagram_service.delete_diagram(db, diagram_id)
    if image_paths is None:
        raise HTTPException(status_code=404, detail="Diagram not found")
    for image_path in image_paths:
        renderer.delete_image(image_path)
    return {"deleted": True, "action_items_preserved": True}
