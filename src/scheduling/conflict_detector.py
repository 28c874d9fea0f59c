from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from day_planner.models import BaseTask, BusyInterval, Conflict

logger = logging.getLogger(__name__)


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval overlap; touching intervals do not overlap."""
    return start_a < end_b and end_a > start_b


def _movable(task: BaseTask) -> bool:
    return not task.is_fixed and task.reschedule_policy != "drop"


def _order_pair(a: BaseTask, b: BaseTask) -> tuple[BaseTask, BaseTask]:
    # the side listed first is the one that may be moved
    if _movable(a) != _movable(b):
        return (a, b) if _movable(a) else (b, a)
    if a.priority_score != b.priority_score:
        return (a, b) if a.priority_score < b.priority_score else (b, a)
    return (a, b) if a.task_id > b.task_id else (b, a)


def _task_conflict(a: BaseTask, b: BaseTask) -> Conflict:
    first, second = _order_pair(a, b)
    return Conflict(
        first_id=first.task_id,
        first_name=first.name,
        second_id=second.task_id,
        second_name=second.name,
        overlap_start=max(first.start, second.start),
        overlap_end=min(first.end, second.end),
        first_fixed=first.is_fixed,
        second_fixed=second.is_fixed,
    )


def _busy_conflict(task: BaseTask, busy: BusyInterval) -> Conflict:
    return Conflict(
        first_id=task.task_id,
        first_name=task.name,
        second_id=busy.event_id or "external",
        second_name=busy.label,
        overlap_start=max(task.start, busy.start),
        overlap_end=min(task.end, busy.end),
        external=True,
        first_fixed=task.is_fixed,
        second_fixed=True,
    )


def displacement_candidate(conflict: Conflict) -> Optional[str]:
    """Task id that should move to resolve ``conflict``, or None when neither side may."""
    if not conflict.first_fixed:
        return conflict.first_id
    if not conflict.external and not conflict.second_fixed:
        return conflict.second_id
    return None


class ConflictDetector:
    def detect(
        self,
        tasks: Sequence[BaseTask],
        busy_intervals: Iterable[BusyInterval] = (),
    ) -> List[Conflict]:
        placed = sorted(
            (t for t in tasks if t.is_resolved),
            key=lambda t: (t.start, t.end, t.task_id),
        )
        busy = [b for b in busy_intervals if b.end > b.start]
        conflicts: List[Conflict] = []

        # sweep: once a later task starts after our end, nothing further can overlap
        for i, a in enumerate(placed):
            for b in placed[i + 1:]:
                if b.start >= a.end:
                    break
                if overlaps(a.start, a.end, b.start, b.end):
                    conflicts.append(_task_conflict(a, b))

        for task in placed:
            for interval in busy:
                if overlaps(task.start, task.end, interval.start, interval.end):
                    conflicts.append(_busy_conflict(task, interval))

        if conflicts:
            logger.info(f"Detected {len(conflicts)} conflicts among {len(placed)} placed tasks")
        return conflicts


def detect(tasks: Sequence[BaseTask], busy_intervals: Iterable[BusyInterval] = ()) -> List[Conflict]:
    return ConflictDetector().detect(tasks, busy_intervals)
