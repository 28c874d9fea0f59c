import asyncio
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from api.metrics import CANDIDATES_GENERATED_TOTAL, TASKS_MIGRATED_TOTAL, TASKS_SCHEDULED_TOTAL
from completion.completion_handler import DEFAULT_REMAINING_MINUTES, CompletionHandler
from day_planner.errors import CandidateNotFoundError, NotificationNotFoundError
from day_planner.models import (
    BaseTask,
    BusyInterval,
    IncompleteTaskRecord,
    ScheduleCandidate,
    SchedulePayload,
    TaskCompletionData,
    UserPreferences,
)
from integration.base import CalendarStore
from integration.planner_sheets import PlannerSheets
from llm.llm_client import LLMClient
from llm.prompts import modification_prompt
from llm.schemas import Unparseable
from normalization.task_normalizer import TaskNormalizer
from notifications.timer_engine import NotificationTimerEngine
from scheduling.candidate_generator import CandidateGenerator
from scheduling.modification import apply_plan
from scheduling.schedule_applier import ApplyReport, ScheduleApplier, ScheduleState
from storage.completion_log_store import CompletionLogStore
from storage.preferences_store import PreferencesStore

logger = logging.getLogger(__name__)


class BackendAPI:
    """Central orchestration component: every presentation-layer intent lands here."""

    def __init__(
        self,
        sheets: PlannerSheets,
        calendar_store: CalendarStore,
        engine: NotificationTimerEngine,
        preferences_store: PreferencesStore,
        completion_log: CompletionLogStore,
        llm_client: Optional[LLMClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
        feedback_delay_s: float = 1.0,
    ):
        self.sheets = sheets
        self.calendar_store = calendar_store
        self.engine = engine
        self.preferences_store = preferences_store
        self.llm_client = llm_client
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self.state = ScheduleState()
        self.generator = CandidateGenerator(llm_client=llm_client, clock=self.clock)
        self.applier = ScheduleApplier(calendar_store, engine, self.state)
        self.completion = CompletionHandler(
            sheets,
            engine,
            self.state,
            completion_log,
            calendar_store=calendar_store,
            clock=self.clock,
            feedback_delay_s=feedback_delay_s,
        )
        self.candidates: Dict[str, ScheduleCandidate] = {}

    # --- helpers ---

    def _today(self, prefs: UserPreferences) -> date:
        return self.clock().astimezone(ZoneInfo(prefs.timezone)).date()

    async def _busy_intervals(self, day: date, prefs: UserPreferences) -> List[BusyInterval]:
        tz = ZoneInfo(prefs.timezone)
        start = datetime.combine(day, time(0, 0), tzinfo=tz)
        try:
            events = await asyncio.to_thread(
                self.calendar_store.list_events, start, start + timedelta(days=1)
            )
        except Exception as e:
            logger.warning(f"Calendar unavailable, scheduling without busy time: {e}")
            return []
        # the planner's own bookings are not external commitments
        return [e for e in events if e.task_id is None]

    async def _generate(
        self, tasks: List[BaseTask], day: date, prefs: UserPreferences
    ) -> List[ScheduleCandidate]:
        busy = await self._busy_intervals(day, prefs)
        candidates = await asyncio.to_thread(self.generator.generate, tasks, busy, day, prefs)
        for c in candidates:
            self.candidates[c.id] = c
            CANDIDATES_GENERATED_TOTAL.labels(strategy=c.strategy).inc()
        return candidates

    # --- intents ---

    async def generate_daily_schedule(self, day: Optional[date] = None) -> List[ScheduleCandidate]:
        """Read the three sheets plus the day's calendar and produce ranked candidates."""
        prefs = self.preferences_store.load()
        day = day or self._today(prefs)

        fixed, priority, incomplete = await asyncio.gather(
            asyncio.to_thread(self.sheets.get_course_schedule),
            asyncio.to_thread(self.sheets.get_priority_tasks),
            asyncio.to_thread(self.sheets.get_incomplete_tasks),
            return_exceptions=True,
        )
        rows = []
        for name, result in (("course", fixed), ("priority", priority), ("incomplete", incomplete)):
            if isinstance(result, Exception):
                logger.warning(f"Could not read {name} sheet: {result}")
                result = []
            rows.append(result)

        tasks = TaskNormalizer(day, prefs.timezone).normalize(*rows)
        candidates = await self._generate(tasks, day, prefs)
        logger.info(f"Generated {len(candidates)} candidates for {day.isoformat()}")
        return candidates

    async def select(self, candidate_id: str) -> ApplyReport:
        candidate = self.candidates.get(candidate_id)
        if candidate is None:
            raise CandidateNotFoundError(f"Unknown candidate {candidate_id}")
        report = await self.applier.apply(candidate)
        TASKS_SCHEDULED_TOTAL.inc(sum(1 for t in candidate.schedule.tasks if t.is_resolved))
        # alternatives go stale; the applied one stays selectable for a retry
        self.candidates = {candidate_id: candidate}
        return report

    def current_schedule(self) -> Optional[SchedulePayload]:
        return self.state.current

    async def handle_chat_modification(self, message: str) -> Dict[str, Any]:
        current = self.state.require()
        prefs = self.preferences_store.load()

        if self.llm_client is None:
            plan = Unparseable(reason="no reasoning service configured")
        else:
            prompt = modification_prompt(message, current)
            plan = await asyncio.to_thread(self.llm_client.plan_modification, prompt)

        tasks = apply_plan(plan, current.tasks, current.date, message)
        candidates = await self._generate(tasks, current.date, prefs)
        return {
            "action": "add" if isinstance(plan, Unparseable) else plan.action,
            "suggestions": [] if isinstance(plan, Unparseable) else plan.suggestions,
            "candidates": candidates,
        }

    async def complete_task(self, data: TaskCompletionData) -> Optional[IncompleteTaskRecord]:
        record = await self.completion.handle_completion(data)
        if record is not None:
            TASKS_MIGRATED_TOTAL.inc()
        return record

    async def notification_action(self, notification_id: str, action_id: str) -> Dict[str, Any]:
        notification = self.engine.get(notification_id)
        if notification is None:
            raise NotificationNotFoundError(f"Unknown notification {notification_id}")
        action = self.engine.handle_notification_action(notification_id, action_id)
        if action is None:
            raise NotificationNotFoundError(f"Unknown action {action_id} for {notification_id}")

        result: Dict[str, Any] = {"notification_id": notification_id, "action": action.type}
        if action.type != "complete" or notification.task_id is None:
            return result

        status = action.payload.get("status")
        if status is None:
            logger.info(f"Task {notification.task_id} started")
            result["started"] = True
            return result

        data = TaskCompletionData(task_id=notification.task_id, status=status)
        if status == "partially_completed":
            # a button press carries no numbers; assume half of the planned time is left
            task = self.state.find_task(notification.task_id)
            if task is not None:
                data = data.model_copy(update={
                    "actual_duration_minutes": task.duration_minutes,
                    "remaining_minutes": max(1, task.duration_minutes // 2),
                })
            else:
                data = data.model_copy(update={"remaining_minutes": DEFAULT_REMAINING_MINUTES})
        record = await self.complete_task(data)
        result["migrated"] = record.model_dump() if record is not None else None
        return result

    def update_preferences(self, changes: Dict[str, Any]) -> UserPreferences:
        prefs = self.preferences_store.update(changes)
        logger.info(f"Preferences updated: {sorted(changes)}")
        return prefs
