import logging

from fastapi import APIRouter, Depends, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from api.backend import BackendAPI
from api.dependencies import get_backend
from api.metrics import PENDING_NOTIFICATIONS

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(backend: BackendAPI = Depends(get_backend)) -> dict:
    """Health check endpoint for container orchestration."""
    return {
        "status": "healthy",
        "reasoning_service": backend.llm_client is not None,
        "active_schedule": backend.current_schedule() is not None,
        "pending_notifications": len(backend.engine.get_pending_notifications()),
    }


@router.get("/metrics")
async def metrics(backend: BackendAPI = Depends(get_backend)) -> Response:
    """
    Prometheus scrape endpoint.
    """
    PENDING_NOTIFICATIONS.set(len(backend.engine.get_pending_notifications()))
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
