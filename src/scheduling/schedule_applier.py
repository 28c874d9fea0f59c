from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from day_planner.errors import NoActiveScheduleError
from day_planner.models import BaseTask, ScheduleCandidate, SchedulePayload
from integration.base import CalendarEventRequest, CalendarStore, TrackedTaskRequest
from notifications.timer_engine import NotificationTimerEngine

logger = logging.getLogger(__name__)


class ScheduleState:
    """The current schedule. Written only by the applier, read by everyone else."""

    def __init__(self):
        self._current: Optional[SchedulePayload] = None
        self._candidate_id: Optional[str] = None

    @property
    def current(self) -> Optional[SchedulePayload]:
        return self._current

    @property
    def candidate_id(self) -> Optional[str]:
        return self._candidate_id

    def require(self) -> SchedulePayload:
        if self._current is None:
            raise NoActiveScheduleError("No active schedule; generate and apply one first")
        return self._current

    def find_task(self, task_id: str) -> Optional[BaseTask]:
        if self._current is None:
            return None
        return self._current.find_task(task_id)

    def replace(self, payload: SchedulePayload, candidate_id: str) -> None:
        self._current = payload
        self._candidate_id = candidate_id


@dataclass
class ApplyReport:
    candidate_id: str
    events_created: int = 0
    tracked_tasks_created: int = 0
    notifications_armed: List[str] = field(default_factory=list)
    failed_events: List[str] = field(default_factory=list)
    failed_tracked_tasks: List[str] = field(default_factory=list)
    skipped_unresolved: List[str] = field(default_factory=list)

    @property
    def partial_failure(self) -> bool:
        return bool(self.failed_events or self.failed_tracked_tasks)


def event_description(task: BaseTask) -> str:
    return (
        f"Priority: {task.priority_score:g}\n"
        f"Targets: {', '.join(task.targets)}\n"
        f"Notes: {task.notes}"
    )


class ScheduleApplier:
    def __init__(
        self,
        store: CalendarStore,
        engine: NotificationTimerEngine,
        state: Optional[ScheduleState] = None,
    ):
        self.store = store
        self.engine = engine
        self.state = state or ScheduleState()

    async def apply(self, candidate: ScheduleCandidate) -> ApplyReport:
        """Commit ``candidate``: external bookings, tracked tasks, then notifications.

        External failures are collected in the report and never stop arming.
        """
        payload = candidate.schedule
        report = ApplyReport(candidate_id=candidate.id)
        placed = [t for t in payload.tasks if t.is_resolved]
        report.skipped_unresolved = [t.task_id for t in payload.tasks if not t.is_resolved]

        for task in placed:
            if task.is_fixed:
                continue
            request = CalendarEventRequest(
                task_id=task.task_id,
                day=payload.date,
                summary=task.name,
                description=event_description(task),
                start=task.start,
                end=task.end,
                timezone=payload.timezone,
            )
            if await self._call(self.store.create_event, request, task.task_id, "event"):
                report.events_created += 1
            else:
                report.failed_events.append(task.task_id)

        for task in placed:
            request = TrackedTaskRequest(
                task_id=task.task_id,
                day=payload.date,
                title=task.name,
                notes=task.notes,
                due=task.end,
            )
            if await self._call(self.store.create_tracked_task, request, task.task_id, "tracked task"):
                report.tracked_tasks_created += 1
            else:
                report.failed_tracked_tasks.append(task.task_id)

        # replaced, not merged: whatever the old schedule armed goes away
        previous = self.state.current
        if previous is not None:
            for task in previous.tasks:
                self.engine.cancel_task(task.task_id)

        for task in placed:
            report.notifications_armed.append(
                self.engine.schedule_task_start_notification(task.task_id, task.name, task.start)
            )
            report.notifications_armed.append(
                self.engine.schedule_task_end_notification(task.task_id, task.name, task.end)
            )

        self.state.replace(payload, candidate.id)

        if report.partial_failure:
            logger.warning(
                f"Applied {candidate.id} with external failures: "
                f"events={report.failed_events} tracked={report.failed_tracked_tasks}"
            )
        else:
            logger.info(f"Applied {candidate.id}: {len(placed)} tasks, {len(report.notifications_armed)} notifications")
        return report

    @staticmethod
    async def _call(fn, request, task_id: str, what: str) -> bool:
        try:
            result = await asyncio.to_thread(fn, request)
        except Exception as e:
            logger.error(f"Failed to create {what} for {task_id}: {e}")
            return False
        if result is None:
            logger.error(f"Store returned no id for {what} {task_id}")
            return False
        return True
