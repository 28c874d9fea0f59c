from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from api.backend import BackendAPI
from api.dependencies import get_backend

router = APIRouter()


@router.get("/preferences")
async def get_preferences(backend: BackendAPI = Depends(get_backend)) -> dict:
    return backend.preferences_store.load().model_dump(mode="json")


@router.patch("/preferences")
async def update_preferences(
    changes: Dict[str, Any], backend: BackendAPI = Depends(get_backend)
) -> dict:
    try:
        prefs = backend.update_preferences(changes)
    except (ValidationError, ValueError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    return prefs.model_dump(mode="json")
