import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from api.backend import BackendAPI
from api.dependencies import get_backend
from api.metrics import record_request
from day_planner.errors import CandidateNotFoundError, NoActiveScheduleError
from day_planner.models import CalendarDay

router = APIRouter()
logger = logging.getLogger(__name__)


class GenerateIn(BaseModel):
    day: Optional[CalendarDay] = None


class SelectIn(BaseModel):
    candidate_id: str = Field(..., min_length=1)


class ChatIn(BaseModel):
    message: str = Field(..., min_length=1)


@router.post("/schedule/generate")
async def generate_schedule(
    payload: GenerateIn, backend: BackendAPI = Depends(get_backend)
) -> dict:
    start = time.time()
    candidates = await backend.generate_daily_schedule(payload.day)
    record_request("/schedule/generate", "ok", start)
    return {"candidates": [c.model_dump(mode="json") for c in candidates]}


@router.post("/schedule/select")
async def select_candidate(payload: SelectIn, backend: BackendAPI = Depends(get_backend)) -> dict:
    start = time.time()
    try:
        report = await backend.select(payload.candidate_id)
    except CandidateNotFoundError as e:
        record_request("/schedule/select", "not_found", start)
        raise HTTPException(status_code=404, detail=str(e))

    record_request("/schedule/select", "partial" if report.partial_failure else "ok", start)
    return {
        "candidate_id": report.candidate_id,
        "events_created": report.events_created,
        "tracked_tasks_created": report.tracked_tasks_created,
        "notifications_armed": report.notifications_armed,
        "failed_events": report.failed_events,
        "failed_tracked_tasks": report.failed_tracked_tasks,
        "partial_failure": report.partial_failure,
    }


@router.get("/schedule/current")
async def current_schedule(backend: BackendAPI = Depends(get_backend)) -> dict:
    payload = backend.current_schedule()
    return {"schedule": payload.model_dump(mode="json") if payload else None}


@router.post("/schedule/chat")
async def chat_modification(payload: ChatIn, backend: BackendAPI = Depends(get_backend)) -> dict:
    start = time.time()
    logger.info(f"Chat modification: {payload.message[:50]}")
    try:
        result = await backend.handle_chat_modification(payload.message)
    except NoActiveScheduleError as e:
        record_request("/schedule/chat", "no_schedule", start)
        raise HTTPException(status_code=409, detail=str(e))

    record_request("/schedule/chat", "ok", start)
    return {
        **result,
        "candidates": [c.model_dump(mode="json") for c in result["candidates"]],
    }
