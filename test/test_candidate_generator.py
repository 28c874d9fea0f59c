import json

from conftest import DAY, FailingProvider, FakeClock, at
from day_planner.models import UserPreferences
from llm.llm_client import LLMClient
from scheduling.candidate_generator import CandidateGenerator, score_candidate
from scheduling.conflict_detector import detect


def _generator(provider=None):
    client = LLMClient(provider) if provider is not None else None
    return CandidateGenerator(llm_client=client, clock=FakeClock(at(7)))


def test_fallback_always_yields_candidates(sample_tasks):
    candidates = _generator().generate(sample_tasks, [], DAY, UserPreferences())
    assert len(candidates) == 3
    for c in candidates:
        assert c.strategy == "fallback"
        assert c.id.startswith("fallback_")
        assert c.schedule.date == DAY
        course = c.schedule.find_task("course_0")
        assert (course.start, course.end) == (at(9), at(10, 30))
        assert detect(c.schedule.tasks) == []
    assert [c.score for c in candidates] == sorted((c.score for c in candidates), reverse=True)


def test_input_list_is_not_mutated(sample_tasks):
    _generator().generate(sample_tasks, [], DAY, UserPreferences(), count=1)
    assert sample_tasks[1].start is None
    assert len(sample_tasks) == 3


def test_count_is_capped_at_available_strategies(sample_tasks):
    candidates = _generator().generate(sample_tasks, [], DAY, UserPreferences(), count=10)
    assert len(candidates) == 4


def test_unparseable_reply_falls_back(sample_tasks, fake_provider_factory):
    candidates = _generator(fake_provider_factory("I cannot help with that")).generate(
        sample_tasks, [], DAY, UserPreferences()
    )
    assert candidates and all(c.strategy == "fallback" for c in candidates)


def test_unreachable_service_falls_back(sample_tasks):
    candidates = _generator(FailingProvider()).generate(sample_tasks, [], DAY, UserPreferences())
    assert candidates and all(c.strategy == "fallback" for c in candidates)


def test_empty_candidate_list_falls_back(sample_tasks, fake_provider_factory):
    reply = json.dumps({"explanation": "none", "candidates": []})
    candidates = _generator(fake_provider_factory(reply)).generate(
        sample_tasks, [], DAY, UserPreferences()
    )
    assert candidates[0].strategy == "fallback"


def test_ai_candidate_keeps_fixed_tasks_in_place(sample_tasks, fake_provider_factory):
    reply = {
        "explanation": "ai plan",
        "candidates": [
            {
                "id": "candidate_1",
                "schedule": {
                    "tasks": [
                        {"task_id": "course_0", "name": "Algorithms", "type": "fixed",
                         "start": "2025-03-03T13:00:00+05:30", "duration_minutes": 90},
                        {"task_id": "essay", "name": "Essay draft",
                         "start": "2025-03-03T11:00:00", "duration_minutes": 60},
                        {"task_id": "walk", "name": "Walk", "kind": "recurring",
                         "start": "2025-03-03T12:30:00+05:30", "duration_minutes": 30},
                    ],
                },
                "explanation": "keeps the morning free",
            }
        ],
    }
    provider = fake_provider_factory("```json\n" + json.dumps(reply) + "\n```")
    (candidate,) = _generator(provider).generate(sample_tasks, [], DAY, UserPreferences())

    assert candidate.id == "candidate_1"
    assert candidate.strategy == "ai"
    tasks = candidate.schedule
    assert (tasks.find_task("course_0").start, tasks.find_task("course_0").end) == (at(9), at(10, 30))
    # naive times from the reply are read in the user's timezone
    assert tasks.find_task("essay").start == at(11)
    assert tasks.find_task("walk").source == "agent"
    assert tasks.find_task("walk").kind == "recurring"
    # forgotten by the reply, kept but unplaced
    assert not tasks.find_task("report").is_resolved
    assert any("report" in msg for msg in candidate.conflicts)
    assert candidate.score < 100
    assert "optimized daily schedule candidates" in provider.calls[0]


def test_score_penalties():
    assert score_candidate(0, []) == 100
    assert score_candidate(2, []) == 80
    assert score_candidate(20, []) == 0


def test_off_day_starts_in_reply_are_unplaced(sample_tasks, fake_provider_factory):
    reply = {
        "candidates": [
            {
                "id": "far_future",
                "tasks": [
                    {"task_id": "report", "name": "Write report",
                     "start": "9999-12-31T23:30:00+00:00", "duration_minutes": 120},
                    {"task_id": "essay", "name": "Essay draft",
                     "start": "2025-03-04T11:00:00+05:30", "duration_minutes": 60},
                    {"task_id": "extra", "name": "Extra",
                     "start": "9999-12-31T23:30:00", "duration_minutes": 30},
                ],
            }
        ],
    }
    provider = fake_provider_factory(json.dumps(reply))
    (candidate,) = _generator(provider).generate(sample_tasks, [], DAY, UserPreferences())

    assert candidate.id == "far_future"
    schedule = candidate.schedule
    assert not schedule.find_task("report").is_resolved
    assert not schedule.find_task("essay").is_resolved
    assert not schedule.find_task("extra").is_resolved
    assert schedule.find_task("course_0").start == at(9)
