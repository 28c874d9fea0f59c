import logging
import os

from fastapi import FastAPI

from api import state
from api.dependencies import get_backend
from api.metrics import NOTIFICATIONS_DELIVERED_TOTAL
from api.routers import notifications, ops, preferences, schedule, tasks
from day_planner.models import NotificationConfig

# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="day-planner")

app.include_router(ops.router)
app.include_router(schedule.router)
app.include_router(tasks.router)
app.include_router(notifications.router)
app.include_router(preferences.router)


def _count_delivery(notification: NotificationConfig) -> None:
    NOTIFICATIONS_DELIVERED_TOTAL.labels(kind=notification.kind).inc()


@app.on_event("startup")
async def startup() -> None:
    backend = get_backend()
    state.unsubscribe_metrics = backend.engine.subscribe(_count_delivery)
    logger.info(
        f"Planner started (reasoning service: {'on' if backend.llm_client else 'off'})"
    )


@app.on_event("shutdown")
async def shutdown() -> None:
    if state.unsubscribe_metrics is not None:
        state.unsubscribe_metrics()
        state.unsubscribe_metrics = None
    if state.backend is not None:
        state.backend.engine.cleanup()
    logger.info("Planner stopped, pending timers cancelled")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
