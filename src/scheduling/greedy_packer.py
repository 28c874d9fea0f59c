from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from day_planner.models import BaseTask, BusyInterval, FlexibleTask, IncompleteTask
from scheduling.conflict_detector import overlaps

logger = logging.getLogger(__name__)

Interval = Tuple[datetime, datetime]


@dataclass(frozen=True)
class PackingConstraints:
    window_start: datetime
    window_end: datetime
    break_minutes: int = 15
    max_consecutive_minutes: int = 180

    @property
    def break_delta(self) -> timedelta:
        return timedelta(minutes=self.break_minutes)


@dataclass
class PackResult:
    tasks: List[BaseTask] = field(default_factory=list)
    unscheduled: List[BaseTask] = field(default_factory=list)
    ordering: str = "priority"


def _due(task: BaseTask, today: date) -> Optional[date]:
    if isinstance(task, FlexibleTask):
        return task.due_date
    if isinstance(task, IncompleteTask):
        # carried-over work is already late
        return today
    return None


def priority_key(task: BaseTask, today: date):
    due = _due(task, today)
    return (-task.priority_score, not task.is_fixed, due is None, due or date.max, task.task_id)


def deadline_key(task: BaseTask, today: date):
    due = _due(task, today)
    return (due is None, due or date.max, -task.priority_score, task.task_id)


def shortest_key(task: BaseTask, today: date):
    return (task.duration_minutes, -task.priority_score, task.task_id)


def order_by_priority(tasks: Sequence[BaseTask], today: date) -> List[BaseTask]:
    return sorted(tasks, key=lambda t: priority_key(t, today))


def order_by_deadline(tasks: Sequence[BaseTask], today: date) -> List[BaseTask]:
    return sorted(tasks, key=lambda t: deadline_key(t, today))


def order_by_duration(tasks: Sequence[BaseTask], today: date) -> List[BaseTask]:
    return sorted(tasks, key=lambda t: shortest_key(t, today))


def order_by_target_balance(tasks: Sequence[BaseTask], today: date) -> List[BaseTask]:
    """Round-robin across goal targets so no single target eats the day."""
    groups: "OrderedDict[str, List[BaseTask]]" = OrderedDict()
    for task in order_by_priority(tasks, today):
        key = task.targets[0] if task.targets else ""
        groups.setdefault(key, []).append(task)

    out: List[BaseTask] = []
    while groups:
        for key in list(groups):
            out.append(groups[key].pop(0))
            if not groups[key]:
                del groups[key]
    return out


ORDERINGS: Dict[str, Callable[[Sequence[BaseTask], date], List[BaseTask]]] = {
    "priority": order_by_priority,
    "deadline": order_by_deadline,
    "shortest": order_by_duration,
    "balanced": order_by_target_balance,
}


class GreedyPacker:
    """Deterministic first-fit packer walking the working-hours window.

    Fixed tasks keep their times and are carved out of the timeline together
    with the external busy intervals; everything else is placed one after
    another, each followed by a break.
    """

    def __init__(self, constraints: PackingConstraints):
        self.constraints = constraints

    def pack(
        self,
        tasks: Iterable[BaseTask],
        busy_intervals: Iterable[BusyInterval] = (),
        ordering: str = "priority",
    ) -> PackResult:
        c = self.constraints
        order = ORDERINGS.get(ordering)
        if order is None:
            raise ValueError(f"unknown ordering: {ordering}")

        tasks = list(tasks)
        fixed = [t for t in tasks if t.is_fixed]
        movable = [t for t in tasks if not t.is_fixed]

        blocked: List[Interval] = sorted(
            [(t.start, t.end) for t in fixed]
            + [(b.start, b.end) for b in busy_intervals if b.end > b.start]
        )

        placed: List[BaseTask] = []
        unscheduled: List[BaseTask] = []
        cursor = c.window_start
        consecutive = 0

        for task in order(movable, c.window_start.date()):
            duration = timedelta(minutes=task.duration_minutes)
            start = cursor
            run = consecutive
            if run and run + task.duration_minutes > c.max_consecutive_minutes:
                start = start + c.break_delta
                run = 0

            start = self._first_gap(start, duration + c.break_delta, blocked)
            if start + duration > c.window_end:
                earlier = self._backfill(task, blocked, placed)
                if earlier is None:
                    logger.info(f"Task {task.task_id} does not fit before {c.window_end.strftime('%H:%M')}")
                    unscheduled.append(task.unplaced())
                else:
                    placed.append(earlier)
                continue

            if start > cursor:
                # a jump over a fixed block or an idle gap counts as a rest
                run = 0
            placed.append(task.placed_at(start))
            cursor = start + duration + c.break_delta
            consecutive = run + task.duration_minutes

        return PackResult(
            tasks=list(fixed) + placed + unscheduled,
            unscheduled=unscheduled,
            ordering=ordering,
        )

    def _backfill(
        self, task: BaseTask, blocked: List[Interval], placed: List[BaseTask]
    ) -> Optional[BaseTask]:
        """Try the gaps the cursor already walked past; the cursor itself stays put."""
        c = self.constraints
        duration = timedelta(minutes=task.duration_minutes)
        taken = blocked + [(t.start, t.end + c.break_delta) for t in placed]
        start = self._first_gap(c.window_start, duration + c.break_delta, taken)
        if start + duration > c.window_end:
            return None
        logger.info(f"Task {task.task_id} fits an earlier gap at {start.strftime('%H:%M')}")
        return task.placed_at(start)

    @staticmethod
    def _first_gap(start: datetime, need: timedelta, blocked: List[Interval]) -> datetime:
        moved = True
        while moved:
            moved = False
            for b_start, b_end in blocked:
                if overlaps(start, start + need, b_start, b_end):
                    start = b_end
                    moved = True
        return start
