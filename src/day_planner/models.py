from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator


PriorityLabel = Literal["critical", "high", "medium", "low"]
TaskSource = Literal["external_sheet", "user", "agent"]
ReschedulePolicy = Literal["push", "split", "drop"]

FIXED_PRIORITY_SCORE = 100.0
# nothing is planned past a single day
MAX_TASK_MINUTES = 24 * 60

CalendarDay = date


class TaskMetadata(BaseModel):
    estimated_effort: int = Field(50, ge=0, le=100)
    progress_percent: int = Field(0, ge=0, le=100)


class BaseTask(BaseModel):
    task_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    duration_minutes: int = Field(60, gt=0, le=MAX_TASK_MINUTES)

    priority_score: float = Field(0.0, ge=0, le=FIXED_PRIORITY_SCORE)
    targets: List[str] = Field(default_factory=list)
    notes: str = ""

    source: TaskSource = "external_sheet"
    reschedule_policy: ReschedulePolicy = "push"
    metadata: TaskMetadata = Field(default_factory=TaskMetadata)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("name must not be blank")
        return v2

    @field_validator("targets")
    @classmethod
    def drop_empty_targets(cls, v: List[str]) -> List[str]:
        return [t.strip() for t in v if t and t.strip()]

    @model_validator(mode="after")
    def resolve_interval(self):
        # a task is either fully placed or not placed at all
        if self.start is not None and self.end is None:
            self.end = self.start + timedelta(minutes=self.duration_minutes)
        if self.start is None and self.end is not None:
            self.start = self.end - timedelta(minutes=self.duration_minutes)
        if self.start is not None:
            if self.start.tzinfo is None or self.end.tzinfo is None:
                raise ValueError("start/end must carry a timezone offset")
            if self.end - self.start != timedelta(minutes=self.duration_minutes):
                raise ValueError("end - start must equal duration_minutes")
        return self

    @computed_field
    @property
    def is_fixed(self) -> bool:
        return self.kind == "fixed"

    @property
    def is_resolved(self) -> bool:
        return self.start is not None and self.end is not None

    def placed_at(self, start: datetime) -> "BaseTask":
        """Return a copy placed at ``start``; the receiver is left untouched."""
        return self.model_copy(
            update={"start": start, "end": start + timedelta(minutes=self.duration_minutes)}
        )

    def unplaced(self) -> "BaseTask":
        return self.model_copy(update={"start": None, "end": None})


class FixedTask(BaseTask):
    kind: Literal["fixed"] = "fixed"
    priority_score: float = FIXED_PRIORITY_SCORE
    reschedule_policy: ReschedulePolicy = "drop"
    location: str = ""

    @model_validator(mode="after")
    def fixed_needs_interval(self):
        if not self.is_resolved:
            raise ValueError("fixed tasks need a resolved start/end")
        return self


class FlexibleTask(BaseTask):
    kind: Literal["flexible"] = "flexible"
    priority_label: PriorityLabel = "medium"
    due_date: Optional[date] = None


class IncompleteTask(BaseTask):
    kind: Literal["incomplete"] = "incomplete"
    reschedule_policy: ReschedulePolicy = "split"
    priority_label: PriorityLabel = "medium"
    original_duration: Optional[int] = Field(None, gt=0)
    source_date: Optional[date] = None


class RecurringTask(BaseTask):
    kind: Literal["recurring"] = "recurring"
    recurrence: str = "daily"


Task = Annotated[
    Union[FixedTask, FlexibleTask, IncompleteTask, RecurringTask],
    Field(discriminator="kind"),
]


class SchedulePayload(BaseModel):
    user_id: str = "default"
    date: CalendarDay
    timezone: str = "Asia/Kolkata"
    tasks: List[Task] = Field(default_factory=list)
    generated_at: datetime
    agent_version: str = "1.0.0"
    explainability: str = ""

    @model_validator(mode="after")
    def order_by_start(self):
        # unresolved tasks go last, in their incoming order
        self.tasks = sorted(
            self.tasks,
            key=lambda t: t.start.timestamp() if t.start else float("inf"),
        )
        return self

    def find_task(self, task_id: str) -> Optional[BaseTask]:
        for task in self.tasks:
            if task.task_id == task_id:
                return task
        return None


class ScheduleCandidate(BaseModel):
    id: str
    schedule: SchedulePayload
    score: float = Field(0.0, ge=0, le=100)
    explanation: str = ""
    conflicts: List[str] = Field(default_factory=list)
    strategy: str = "fallback"


class BusyInterval(BaseModel):
    """Time held by something outside the candidate (e.g. an existing calendar event)."""

    start: datetime
    end: datetime
    label: str = "busy"
    event_id: Optional[str] = None
    # set when the event was created by this planner for one of its own tasks
    task_id: Optional[str] = None


class Conflict(BaseModel):
    first_id: str
    first_name: str
    second_id: str
    second_name: str
    overlap_start: datetime
    overlap_end: datetime
    external: bool = False
    first_fixed: bool = False
    second_fixed: bool = False

    def describe(self) -> str:
        window = f"{self.overlap_start.strftime('%H:%M')}-{self.overlap_end.strftime('%H:%M')}"
        other = "existing event" if self.external else "task"
        return (
            f'Task "{self.first_name}" ({self.first_id}) conflicts with {other} '
            f'"{self.second_name}" ({self.second_id}) during {window}'
        )


NotificationKind = Literal["task_start", "task_end", "reminder", "schedule_update", "system"]
NotificationActionKind = Literal["snooze", "complete", "reschedule", "cancel"]
NotificationStatus = Literal["pending", "snoozed", "delivered", "cancelled"]


class NotificationAction(BaseModel):
    id: str
    label: str
    type: NotificationActionKind
    payload: Dict[str, Any] = Field(default_factory=dict)


class NotificationConfig(BaseModel):
    id: str
    kind: NotificationKind
    title: str
    message: str
    task_id: Optional[str] = None
    scheduled_time: datetime
    delivered: bool = False
    status: NotificationStatus = "pending"
    snooze_count: int = 0
    actions: List[NotificationAction] = Field(default_factory=list)

    def find_action(self, action_id: str) -> Optional[NotificationAction]:
        for action in self.actions:
            if action.id == action_id:
                return action
        return None


CompletionStatus = Literal["completed", "partially_completed", "not_completed"]


class TaskCompletionData(BaseModel):
    task_id: str = Field(..., min_length=1)
    status: CompletionStatus
    actual_duration_minutes: Optional[int] = Field(None, ge=0)
    remaining_minutes: Optional[int] = Field(None, ge=0)
    progress_percent: Optional[int] = Field(None, ge=0, le=100)
    notes: Optional[str] = None
    reason: Optional[str] = None


# --- source rows (one per sheet row) ---


class CourseScheduleItem(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    day: str = ""
    time: str = ""
    course: str = ""
    location: str = ""
    instructor: str = ""


class PriorityTaskItem(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str = ""
    name: str = ""
    priority: str = "medium"
    estimated_duration: Optional[Any] = None
    due_date: Optional[str] = None
    # sheets hand over "a, b"; other callers pass a list
    targets: Union[List[str], str] = Field(default_factory=list)
    notes: str = ""
    difficulty: Optional[Any] = None


class IncompleteTaskRecord(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str = ""
    name: str = ""
    original_duration: Optional[Any] = None
    remaining_duration: Optional[Any] = None
    priority: str = "medium"
    source_date: str = ""
    progress: Optional[Any] = None
    notes: str = ""

    def to_row(self) -> List[str]:
        return [
            self.id,
            self.name,
            str(self.original_duration if self.original_duration is not None else ""),
            str(self.remaining_duration if self.remaining_duration is not None else ""),
            self.priority,
            self.source_date,
            str(self.progress if self.progress is not None else ""),
            self.notes,
        ]


class UserPreferences(BaseModel):
    user_id: str = "default"
    timezone: str = "Asia/Kolkata"

    work_start: time = Field(default_factory=lambda: time(9, 0))
    work_end: time = Field(default_factory=lambda: time(18, 0))
    sleep_start: time = Field(default_factory=lambda: time(22, 0))
    sleep_end: time = Field(default_factory=lambda: time(7, 0))

    break_minutes: int = Field(15, ge=0)
    commute_buffer_minutes: int = Field(30, ge=0)
    preferred_task_duration_min: int = Field(90, gt=0)
    max_consecutive_minutes: int = Field(180, gt=0)

    candidate_count: int = Field(3, ge=1)

    @model_validator(mode="after")
    def work_window_ordered(self):
        if self.work_end <= self.work_start:
            raise ValueError("work_end must be after work_start")
        return self
