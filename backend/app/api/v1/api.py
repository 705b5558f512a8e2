from fastapi import APIRouter

from app.api.v1.endpoints import action_items, customers, diagrams, health, queue, sessions

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(queue.router, prefix="/queue", tags=["queue"])
api_router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
api_router.include_router(customers.router, prefix="/customers", tags=["customers"])
api_router.include_router(diagrams.router, prefix="/diagrams", tags=["diagrams"])
api_router.include_router(action_items.router, prefix="/action-items", tags=["action-items"])
