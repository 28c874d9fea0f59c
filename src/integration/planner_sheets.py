from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from day_planner.models import CourseScheduleItem, IncompleteTaskRecord, PriorityTaskItem
from integration.base import TabularDataSource

logger = logging.getLogger(__name__)

COURSE_SCHEDULE = "Course Schedule"
PRIORITY_TASKS = "Priority Tasks"
INCOMPLETE_TASKS = "Incomplete Tasks"


def _cell(row: List[Any], idx: int) -> str:
    if idx < len(row) and row[idx] is not None:
        return str(row[idx]).strip()
    return ""


def _blank(row: List[Any]) -> bool:
    return not any(str(c).strip() for c in row if c is not None)


def course_items(rows: List[List[Any]]) -> List[CourseScheduleItem]:
    return [
        CourseScheduleItem(
            day=_cell(r, 0),
            time=_cell(r, 1),
            course=_cell(r, 2),
            location=_cell(r, 3),
            instructor=_cell(r, 4),
        )
        for r in rows
        if not _blank(r)
    ]


def priority_items(rows: List[List[Any]]) -> List[PriorityTaskItem]:
    return [
        PriorityTaskItem(
            id=_cell(r, 0) or f"priority_{index}",
            name=_cell(r, 1),
            priority=_cell(r, 2).lower() or "medium",
            estimated_duration=_cell(r, 3) or None,
            due_date=_cell(r, 4) or None,
            targets=_cell(r, 5),
            notes=_cell(r, 6),
            difficulty=_cell(r, 7) or None,
        )
        for index, r in enumerate(rows)
        if not _blank(r)
    ]


def incomplete_items(rows: List[List[Any]]) -> List[IncompleteTaskRecord]:
    return [
        IncompleteTaskRecord(
            id=_cell(r, 0) or f"incomplete_{index}",
            name=_cell(r, 1),
            original_duration=_cell(r, 2) or None,
            remaining_duration=_cell(r, 3) or None,
            priority=_cell(r, 4).lower() or "medium",
            source_date=_cell(r, 5),
            progress=_cell(r, 6) or None,
            notes=_cell(r, 7),
        )
        for index, r in enumerate(rows)
        if not _blank(r)
    ]


class PlannerSheets:
    """Typed view over the three input sheets of a ``TabularDataSource``."""

    def __init__(self, source: TabularDataSource):
        self.source = source

    def get_course_schedule(self) -> List[CourseScheduleItem]:
        return course_items(self.source.read_rows(COURSE_SCHEDULE))

    def get_priority_tasks(self) -> List[PriorityTaskItem]:
        return priority_items(self.source.read_rows(PRIORITY_TASKS))

    def get_incomplete_tasks(self) -> List[IncompleteTaskRecord]:
        return incomplete_items(self.source.read_rows(INCOMPLETE_TASKS))

    def add_priority_task(self, item: PriorityTaskItem) -> str:
        task_id = item.id or f"priority_{int(time.time() * 1000)}"
        targets = item.targets if isinstance(item.targets, str) else ", ".join(item.targets)
        self.source.append_row(
            PRIORITY_TASKS,
            [
                task_id,
                item.name,
                item.priority,
                str(item.estimated_duration or ""),
                item.due_date or "",
                targets,
                item.notes,
                str(item.difficulty or ""),
            ],
        )
        return task_id

    def add_incomplete_task(self, record: IncompleteTaskRecord) -> str:
        if not record.id:
            record = record.model_copy(update={"id": f"incomplete_{int(time.time() * 1000)}"})
        self.source.append_row(INCOMPLETE_TASKS, record.to_row())
        logger.info(f"Migrated {record.id} to {INCOMPLETE_TASKS}")
        return record.id

    def _incomplete_row_index(self, task_id: str) -> Optional[int]:
        for index, row in enumerate(self.source.read_rows(INCOMPLETE_TASKS)):
            if _cell(row, 0) == task_id:
                return index
        return None

    def update_incomplete_task(self, task_id: str, updates: Dict[str, Any]) -> bool:
        index = self._incomplete_row_index(task_id)
        if index is None:
            return False
        row = self.source.read_rows(INCOMPLETE_TASKS)[index]
        updated = incomplete_items([row])[0].model_copy(update=updates)
        self.source.update_row(INCOMPLETE_TASKS, index, updated.to_row())
        return True

    def remove_incomplete_task(self, task_id: str) -> Optional[str]:
        index = self._incomplete_row_index(task_id)
        if index is None:
            return None
        return self.source.delete_row(INCOMPLETE_TASKS, index)
