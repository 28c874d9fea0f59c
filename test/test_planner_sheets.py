from integration.base import DELETE_UNSUPPORTED
from integration.memory_stores import InMemoryDataSource
from integration.planner_sheets import (
    COURSE_SCHEDULE,
    INCOMPLETE_TASKS,
    PRIORITY_TASKS,
    PlannerSheets,
)
from day_planner.models import IncompleteTaskRecord, PriorityTaskItem


def _sheets():
    return PlannerSheets(
        InMemoryDataSource(
            {
                COURSE_SCHEDULE: [["Monday", "09:00-10:30", "Algorithms"], [], ["", ""]],
                PRIORITY_TASKS: [["p1", "Report", "HIGH", "120", "2025-03-05", "career, writing"]],
                INCOMPLETE_TASKS: [
                    ["i1", "Essay", "90", "30", "medium", "2025-03-02", "50", ""],
                    [],
                    ["i2", "Slides", "60", "60", "low", "2025-03-02", "0", ""],
                ],
            }
        )
    )


def test_rows_tolerate_missing_cells():
    sheets = _sheets()
    (course,) = sheets.get_course_schedule()
    assert course.course == "Algorithms"
    assert course.instructor == ""

    (task,) = sheets.get_priority_tasks()
    assert task.priority == "high"
    assert task.targets == "career, writing"
    assert task.notes == ""


def test_add_tasks_append_rows():
    sheets = _sheets()
    task_id = sheets.add_priority_task(PriorityTaskItem(name="Gym", targets=["health"]))
    assert task_id.startswith("priority_")
    assert sheets.source.read_rows(PRIORITY_TASKS)[-1][5] == "health"

    sheets.add_incomplete_task(IncompleteTaskRecord(id="i3", name="Lab", remaining_duration=45))
    assert [r.id for r in sheets.get_incomplete_tasks()] == ["i1", "i2", "i3"]


def test_update_incomplete_uses_raw_row_index():
    sheets = _sheets()
    assert sheets.update_incomplete_task("i2", {"progress": 25})
    rows = sheets.source.read_rows(INCOMPLETE_TASKS)
    assert rows[2][6] == "25"
    assert rows[0][6] == "50"
    assert not sheets.update_incomplete_task("missing", {"progress": 1})


def test_remove_is_unsupported_but_reported():
    sheets = _sheets()
    assert sheets.remove_incomplete_task("i1") == DELETE_UNSUPPORTED
    assert sheets.remove_incomplete_task("missing") is None
