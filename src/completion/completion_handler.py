from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from day_planner.models import IncompleteTaskRecord, NotificationConfig, TaskCompletionData
from integration.base import CalendarStore
from integration.planner_sheets import PlannerSheets
from notifications.timer_engine import NotificationTimerEngine
from scheduling.schedule_applier import ScheduleState
from storage.completion_log_store import CompletionEntry, CompletionLogStore

logger = logging.getLogger(__name__)

DEFAULT_FEEDBACK_DELAY_S = 1.0
DEFAULT_PARTIAL_PROGRESS = 50
DEFAULT_REMAINING_MINUTES = 60

FEEDBACK_MESSAGES = {
    "completed": "Great job! Task completed successfully.",
    "partially_completed": "Task partially completed. Remaining work scheduled for tomorrow.",
    "not_completed": "Task moved to tomorrow's schedule.",
}


class CompletionHandler:
    """Turns completion outcomes into analytics entries or migrated incomplete-task rows."""

    def __init__(
        self,
        sheets: PlannerSheets,
        engine: NotificationTimerEngine,
        state: ScheduleState,
        completion_log: CompletionLogStore,
        calendar_store: Optional[CalendarStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        feedback_delay_s: float = DEFAULT_FEEDBACK_DELAY_S,
        timezone_name: str = "Asia/Kolkata",
    ):
        self.sheets = sheets
        self.engine = engine
        self.state = state
        self.completion_log = completion_log
        self.calendar_store = calendar_store
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.feedback_delay_s = feedback_delay_s
        self.timezone_name = timezone_name

    def _today(self) -> date:
        current = self.state.current
        if current is not None:
            return current.date
        return self.clock().astimezone(ZoneInfo(self.timezone_name)).date()

    def _task_name(self, task_id: str) -> str:
        task = self.state.find_task(task_id)
        return task.name if task is not None else f"Incomplete: {task_id}"

    def _original_duration(self, data: TaskCompletionData) -> int:
        task = self.state.find_task(data.task_id)
        if task is not None:
            return task.duration_minutes
        return data.actual_duration_minutes or DEFAULT_REMAINING_MINUTES

    async def handle_completion(self, data: TaskCompletionData) -> Optional[IncompleteTaskRecord]:
        """Dispatch on ``data.status``; returns the migrated record, if any.

        Store failures are logged, never raised. Feedback is always sent.
        """
        status = data.status
        if status == "partially_completed" and not data.remaining_minutes:
            # nothing left to carry over
            status = "completed"

        record = None
        if status == "completed":
            await self._record_completed(data)
        elif status == "partially_completed":
            record = self._migration_record(
                data,
                remaining=data.remaining_minutes,
                original=data.actual_duration_minutes or data.remaining_minutes,
                progress=data.progress_percent if data.progress_percent is not None else DEFAULT_PARTIAL_PROGRESS,
            )
        else:
            record = self._migration_record(
                data,
                remaining=self._original_duration(data),
                original=self._original_duration(data),
                progress=data.progress_percent if data.progress_percent is not None else 0,
            )

        if record is not None:
            try:
                await asyncio.to_thread(self.sheets.add_incomplete_task, record)
            except Exception as e:
                logger.error(f"Failed to store incomplete task for {data.task_id}: {e}")

        self._send_feedback(data.task_id, status)
        return record

    def _migration_record(
        self, data: TaskCompletionData, *, remaining: int, original: int, progress: int
    ) -> IncompleteTaskRecord:
        return IncompleteTaskRecord(
            id=data.task_id,
            name=self._task_name(data.task_id),
            original_duration=original,
            remaining_duration=remaining,
            priority="medium",
            source_date=self._today().isoformat(),
            progress=max(0, min(100, progress)),
            notes=data.notes or data.reason or "Task needs to be rescheduled",
        )

    async def _record_completed(self, data: TaskCompletionData) -> None:
        task = self.state.find_task(data.task_id)
        entry = CompletionEntry(
            task_id=data.task_id,
            name=task.name if task is not None else "",
            actual_duration_minutes=data.actual_duration_minutes,
            completed_at=self.clock(),
            notes=data.notes,
        )
        try:
            await asyncio.to_thread(self.completion_log.append, entry)
        except Exception as e:
            logger.error(f"Failed to log completion of {data.task_id}: {e}")

        if self.calendar_store is None:
            return
        try:
            await asyncio.to_thread(self.calendar_store.complete_tracked_task, data.task_id, self._today())
        except Exception as e:
            logger.error(f"Failed to mark tracked task {data.task_id} completed: {e}")
        logger.info(f"Task {data.task_id} completed")

    def _send_feedback(self, task_id: str, status: str) -> str:
        notification = NotificationConfig(
            id=f"feedback_{task_id}_{uuid.uuid4().hex[:8]}",
            kind="system",
            title="Task Update",
            message=FEEDBACK_MESSAGES[status],
            task_id=task_id,
            scheduled_time=self.clock(),
        )
        return self.engine.schedule_notification(notification, delay_s=self.feedback_delay_s)
