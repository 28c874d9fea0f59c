import asyncio
import logging
import time

from fastapi import APIRouter, Depends

from api.backend import BackendAPI
from api.dependencies import get_backend
from api.metrics import record_request
from day_planner.models import PriorityTaskItem, TaskCompletionData

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/tasks/complete")
async def complete_task(payload: TaskCompletionData, backend: BackendAPI = Depends(get_backend)) -> dict:
    """Report how a task went; unfinished work is carried over to tomorrow."""
    start = time.time()
    record = await backend.complete_task(payload)
    record_request("/tasks/complete", payload.status, start)
    return {
        "task_id": payload.task_id,
        "status": payload.status,
        "migrated": record.model_dump() if record is not None else None,
    }


@router.get("/tasks/incomplete")
async def incomplete_tasks(backend: BackendAPI = Depends(get_backend)) -> dict:
    records = await asyncio.to_thread(backend.sheets.get_incomplete_tasks)
    return {"tasks": [r.model_dump() for r in records], "total": len(records)}


@router.post("/tasks/priority")
async def add_priority_task(payload: PriorityTaskItem, backend: BackendAPI = Depends(get_backend)) -> dict:
    task_id = await asyncio.to_thread(backend.sheets.add_priority_task, payload)
    logger.info(f"Added priority task {task_id}")
    return {"status": "created", "id": task_id}
