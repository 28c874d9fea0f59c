from fastapi import APIRouter, Depends, HTTPException

from api.backend import BackendAPI
from api.dependencies import get_backend
from day_planner.errors import NotificationNotFoundError

router = APIRouter()


@router.get("/notifications")
async def all_notifications(backend: BackendAPI = Depends(get_backend)) -> dict:
    items = backend.engine.get_all_notifications()
    return {"notifications": [n.model_dump(mode="json") for n in items]}


@router.get("/notifications/pending")
async def pending_notifications(backend: BackendAPI = Depends(get_backend)) -> dict:
    items = backend.engine.get_pending_notifications()
    return {"notifications": [n.model_dump(mode="json") for n in items]}


@router.post("/notifications/{notification_id}/actions/{action_id}")
async def notification_action(
    notification_id: str, action_id: str, backend: BackendAPI = Depends(get_backend)
) -> dict:
    try:
        return await backend.notification_action(notification_id, action_id)
    except NotificationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
