import pytest

from conftest import DAY, at
from day_planner.models import BusyInterval, FixedTask, FlexibleTask
from scheduling.conflict_detector import detect
from scheduling.greedy_packer import GreedyPacker, PackingConstraints


def _packer(start=8, end=18, **kw):
    return GreedyPacker(PackingConstraints(window_start=at(start), window_end=at(end), **kw))


def test_sample_day_packing(sample_tasks):
    result = _packer(break_minutes=15).pack(sample_tasks)
    by_id = {t.task_id: t for t in result.tasks}

    assert (by_id["course_0"].start, by_id["course_0"].end) == (at(9), at(10, 30))
    # higher score goes first; the 08:00 gap is too short for 120 min plus a break
    assert (by_id["report"].start, by_id["report"].end) == (at(10, 30), at(12, 30))
    assert (by_id["essay"].start, by_id["essay"].end) == (at(12, 45), at(13, 45))
    assert result.unscheduled == []
    assert detect(result.tasks) == []


def test_input_is_not_mutated(sample_tasks):
    _packer().pack(sample_tasks)
    assert sample_tasks[1].start is None


def test_busy_intervals_are_avoided():
    tasks = [FlexibleTask(task_id="a", name="A", duration_minutes=60)]
    busy = [BusyInterval(start=at(9), end=at(11), label="Meeting")]
    result = _packer(start=9).pack(tasks, busy)
    assert result.tasks[0].start == at(11)


def test_overflow_is_unscheduled_not_dropped():
    tasks = [
        FlexibleTask(task_id="a", name="A", duration_minutes=90, priority_score=50),
        FlexibleTask(task_id="b", name="B", duration_minutes=90, priority_score=40),
    ]
    result = _packer(start=9, end=11).pack(tasks)
    assert [t.task_id for t in result.unscheduled] == ["b"]
    assert not result.tasks[-1].is_resolved
    assert len(result.tasks) == 2


def test_forced_break_after_long_run():
    tasks = [
        FlexibleTask(task_id=f"t{i}", name=f"T{i}", duration_minutes=60, priority_score=50 - i)
        for i in range(4)
    ]
    result = _packer(start=9, break_minutes=15, max_consecutive_minutes=120).pack(tasks)
    starts = [t.start for t in result.tasks]
    assert starts[:2] == [at(9), at(10, 15)]
    # 120 worked minutes: one extra break before the third task
    assert starts[2] == at(11, 45)


def test_orderings():
    tasks = [
        FlexibleTask(task_id="long", name="Long", duration_minutes=120, priority_score=80),
        FlexibleTask(task_id="short", name="Short", duration_minutes=15, priority_score=20),
    ]
    assert _packer().pack(tasks, ordering="priority").tasks[0].task_id == "long"
    assert _packer().pack(tasks, ordering="shortest").tasks[0].task_id == "short"
    with pytest.raises(ValueError):
        _packer().pack(tasks, ordering="random")


def test_deadline_ordering_prefers_carried_over_work(sample_tasks):
    result = _packer().pack(sample_tasks, ordering="deadline")
    movable = [t for t in result.tasks if not t.is_fixed]
    assert movable[0].task_id == "essay"
    assert DAY == result.tasks[0].start.date()


def test_later_task_fills_gap_before_fixed_block():
    tasks = [
        FixedTask(task_id="course_0", name="Algorithms", start=at(9), end=at(10, 30), duration_minutes=90),
        FlexibleTask(task_id="a", name="A", duration_minutes=90, priority_score=60),
        FlexibleTask(task_id="b", name="B", duration_minutes=30, priority_score=40),
    ]
    result = _packer(start=8, end=12, break_minutes=15).pack(tasks)
    by_id = {t.task_id: t for t in result.tasks}

    assert by_id["a"].start == at(10, 30)
    assert (by_id["b"].start, by_id["b"].end) == (at(8), at(8, 30))
    assert result.unscheduled == []
    assert detect(result.tasks) == []
