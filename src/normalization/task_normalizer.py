from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Any, Iterable, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from day_planner.models import (
    BaseTask,
    CourseScheduleItem,
    FixedTask,
    FlexibleTask,
    IncompleteTask,
    IncompleteTaskRecord,
    PriorityTaskItem,
    TaskMetadata,
)
from normalization.priority import (
    flexible_priority_score,
    incomplete_priority_score,
    normalize_label,
    underserved_targets,
)

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MIN = 60

_WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
_EVERY_DAY = {"daily", "everyday", "every day", "all"}
_WEEKDAYS_ONLY = {"weekdays", "weekday", "mon-fri"}


def _parse_hhmm(value: str) -> Optional[time]:
    parts = value.strip().split(":")
    if len(parts) != 2:
        return None
    try:
        hours = int(parts[0])
        minutes = int(parts[1])
    except ValueError:
        return None
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return time(hours, minutes)


def parse_time_range(value: str) -> Optional[Tuple[time, time]]:
    """Parse ``"09:00-10:30"`` (also accepts an en dash or ``" to "``)."""
    if not value:
        return None
    raw = value.replace("–", "-").replace(" to ", "-")
    if raw.count("-") != 1:
        return None
    start_raw, end_raw = raw.split("-")
    start = _parse_hhmm(start_raw)
    end = _parse_hhmm(end_raw)
    if start is None or end is None or end <= start:
        return None
    return start, end


def day_matches(day_field: str, day: date) -> Optional[bool]:
    """Whether a course row's ``day`` cell applies to ``day``.

    Returns None when the cell cannot be understood at all.
    """
    v = (day_field or "").strip().lower()
    if not v:
        return None
    if v in _EVERY_DAY:
        return True
    if v in _WEEKDAYS_ONLY:
        return day.weekday() < 5
    for idx, name in enumerate(_WEEKDAYS):
        if v == name or v == name[:3]:
            return day.weekday() == idx
    try:
        return date.fromisoformat(v) == day
    except ValueError:
        return None


def _parse_positive_int(value: Any, default: int) -> int:
    try:
        n = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return n if n > 0 else default


def _parse_percent(value: Any, default: int = 0) -> int:
    try:
        n = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(0, min(100, n))


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def _split_targets(value: Union[str, Iterable[str], None]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [t.strip() for t in value if t and str(t).strip()]


class TaskNormalizer:
    """Turns the three input sheets into one list of canonical tasks for ``day``."""

    def __init__(self, day: date, timezone: str = "Asia/Kolkata"):
        self.day = day
        self.timezone = timezone
        self.tz = ZoneInfo(timezone)

    def normalize(
        self,
        fixed_items: Iterable[Any],
        priority_items: Iterable[Any],
        incomplete_items: Iterable[Any],
    ) -> List[BaseTask]:
        tasks: List[BaseTask] = []
        seen_ids: set[str] = set()

        def _add(task: Optional[BaseTask]) -> None:
            if task is None:
                return
            task_id = task.task_id
            n = 2
            while task_id in seen_ids:
                task_id = f"{task.task_id}_{n}"
                n += 1
            seen_ids.add(task_id)
            if task_id != task.task_id:
                task = task.model_copy(update={"task_id": task_id})
            tasks.append(task)

        for index, raw in enumerate(fixed_items):
            _add(self._fixed_task(index, raw))

        priority_rows = [self._coerce(PriorityTaskItem, raw) for raw in priority_items]
        underserved = underserved_targets(
            _split_targets(r.targets) for r in priority_rows if r is not None
        )
        for index, row in enumerate(priority_rows):
            _add(self._flexible_task(index, row, underserved))

        for index, raw in enumerate(incomplete_items):
            _add(self._incomplete_task(index, self._coerce(IncompleteTaskRecord, raw)))

        logger.info(f"Normalized {len(tasks)} tasks for {self.day.isoformat()}")
        return tasks

    @staticmethod
    def _coerce(model, raw):
        if raw is None:
            return None
        if isinstance(raw, model):
            return raw
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Skipping malformed {model.__name__} row: {e}")
            return None

    def _at(self, t: time) -> datetime:
        return datetime.combine(self.day, t, tzinfo=self.tz)

    def _fixed_task(self, index: int, raw: Any) -> Optional[FixedTask]:
        row = self._coerce(CourseScheduleItem, raw)
        if row is None:
            return None

        applies = day_matches(row.day, self.day)
        span = parse_time_range(row.time)
        if applies is None or span is None:
            logger.warning(f"Skipping course row {index}: bad day/time ({row.day!r}, {row.time!r})")
            return None
        if not applies:
            return None

        start, end = self._at(span[0]), self._at(span[1])
        return FixedTask(
            task_id=f"course_{index}",
            name=row.course.strip() or "Class",
            start=start,
            end=end,
            duration_minutes=int((end - start).total_seconds() // 60),
            targets=["attend_class"],
            notes=row.instructor,
            location=row.location,
            source="external_sheet",
            metadata=TaskMetadata(estimated_effort=100, progress_percent=0),
        )

    def _flexible_task(
        self, index: int, row: Optional[PriorityTaskItem], underserved: set[str]
    ) -> Optional[FlexibleTask]:
        if row is None:
            return None
        targets = _split_targets(row.targets)
        label = normalize_label(row.priority)
        due = _parse_date(row.due_date)
        try:
            return FlexibleTask(
                task_id=row.id.strip() or f"priority_{index}",
                name=row.name.strip() or "Priority Task",
                duration_minutes=_parse_positive_int(row.estimated_duration, DEFAULT_DURATION_MIN),
                priority_label=label,
                due_date=due,
                priority_score=flexible_priority_score(label, due, targets, self.day, underserved),
                targets=targets or ["productivity"],
                notes=row.notes,
                source="external_sheet",
                reschedule_policy="push",
                metadata=TaskMetadata(
                    estimated_effort=_parse_percent(row.difficulty, 50),
                    progress_percent=0,
                ),
            )
        except ValidationError as e:
            logger.warning(f"Skipping priority row {index}: {e}")
            return None

    def _incomplete_task(
        self, index: int, row: Optional[IncompleteTaskRecord]
    ) -> Optional[IncompleteTask]:
        if row is None:
            return None
        label = normalize_label(row.priority)
        remaining = _parse_positive_int(row.remaining_duration, DEFAULT_DURATION_MIN)
        original = _parse_positive_int(row.original_duration, remaining)
        try:
            return IncompleteTask(
                task_id=row.id.strip() or f"incomplete_{index}",
                name=row.name.strip() or "Incomplete Task",
                duration_minutes=remaining,
                original_duration=original,
                source_date=_parse_date(row.source_date),
                priority_label=label,
                priority_score=incomplete_priority_score(label),
                targets=["completion"],
                notes=row.notes,
                source="external_sheet",
                reschedule_policy="split",
                metadata=TaskMetadata(
                    estimated_effort=30,
                    progress_percent=_parse_percent(row.progress, 0),
                ),
            )
        except ValidationError as e:
            logger.warning(f"Skipping incomplete row {index}: {e}")
            return None
