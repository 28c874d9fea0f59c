import asyncio

import pytest
from fastapi.testclient import TestClient

from conftest import FakeClock, FakeLoop, at
from api import state
from api.backend import BackendAPI
from api.main import app
from integration.memory_stores import InMemoryCalendarStore, InMemoryDataSource
from integration.planner_sheets import COURSE_SCHEDULE, INCOMPLETE_TASKS, PRIORITY_TASKS, PlannerSheets
from llm.llm_client import LLMClient
from llm.providers.mock_provider import MockProvider
from notifications.timer_engine import NotificationTimerEngine
from storage.completion_log_store import CompletionLogStore
from storage.preferences_store import PreferencesStore


@pytest.fixture
def backend(tmp_path, monkeypatch):
    source = InMemoryDataSource(
        {
            COURSE_SCHEDULE: [["Monday", "09:00-10:30", "Algorithms", "B12", "Dr. Rao"]],
            PRIORITY_TASKS: [["p1", "Report", "high", "120", "", "career"]],
            INCOMPLETE_TASKS: [["i1", "Essay", "90", "60", "medium", "2025-03-02", "50", ""]],
        }
    )
    clock = FakeClock(at(8))
    b = BackendAPI(
        sheets=PlannerSheets(source),
        calendar_store=InMemoryCalendarStore(),
        engine=NotificationTimerEngine(clock=clock),
        preferences_store=PreferencesStore(str(tmp_path / "prefs.json")),
        completion_log=CompletionLogStore(str(tmp_path / "log.json")),
        llm_client=LLMClient(MockProvider()),
        clock=clock,
        feedback_delay_s=60,
    )
    monkeypatch.setattr(state, "backend", b)
    return b


def test_health_and_metrics(backend):
    with TestClient(app) as client:
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"
        assert r.json()["reasoning_service"] is True

        m = client.get("/metrics")
        assert m.status_code == 200
        assert "text/plain" in m.headers.get("content-type", "")
        assert "planner_pending_notifications" in m.text


def test_generate_select_and_complete(backend):
    with TestClient(app) as client:
        r = client.post("/schedule/generate", json={"day": "2025-03-03"})
        assert r.status_code == 200
        candidates = r.json()["candidates"]
        assert len(candidates) == 3
        best = candidates[0]
        assert best["strategy"] == "fallback"

        r = client.post("/schedule/select", json={"candidate_id": best["id"]})
        assert r.status_code == 200
        assert r.json()["partial_failure"] is False
        assert "start_p1" in r.json()["notifications_armed"]

        current = client.get("/schedule/current").json()["schedule"]
        assert current["date"] == "2025-03-03"

        r = client.post(
            "/tasks/complete",
            json={"task_id": "p1", "status": "partially_completed",
                  "actual_duration_minutes": 90, "remaining_minutes": 30},
        )
        assert r.status_code == 200
        assert r.json()["migrated"]["remaining_duration"] == 30

        incomplete = client.get("/tasks/incomplete").json()
        assert incomplete["total"] == 2

        metrics = client.get("/metrics").text
        assert 'planner_candidates_generated_total{strategy="fallback"}' in metrics
        assert 'planner_requests_total{endpoint="/schedule/generate",status="ok"}' in metrics


def test_unknown_candidate_is_404(backend):
    with TestClient(app) as client:
        r = client.post("/schedule/select", json={"candidate_id": "nope"})
        assert r.status_code == 404


def test_chat_without_schedule_is_409(backend):
    with TestClient(app) as client:
        r = client.post("/schedule/chat", json={"message": "add a walk"})
        assert r.status_code == 409


def test_chat_modification_returns_fresh_candidates(backend):
    with TestClient(app) as client:
        candidates = client.post("/schedule/generate", json={"day": "2025-03-03"}).json()["candidates"]
        client.post("/schedule/select", json={"candidate_id": candidates[0]["id"]})

        r = client.post("/schedule/chat", json={"message": "add a short walk"})
        assert r.status_code == 200
        body = r.json()
        assert body["action"] == "add"
        names = [t["name"] for t in body["candidates"][0]["schedule"]["tasks"]]
        assert "add a short walk" in names


def test_notification_actions(backend):
    with TestClient(app) as client:
        candidates = client.post("/schedule/generate", json={"day": "2025-03-03"}).json()["candidates"]
        client.post("/schedule/select", json={"candidate_id": candidates[0]["id"]})

        r = client.post("/notifications/start_p1/actions/snooze")
        assert r.status_code == 200
        assert backend.engine.get("start_p1").snooze_count == 1

        r = client.post("/notifications/end_i1/actions/not_completed")
        assert r.status_code == 200
        assert r.json()["migrated"]["remaining_duration"] == 60

        pending = client.get("/notifications/pending").json()["notifications"]
        assert all(n["status"] == "pending" for n in pending)

        assert client.post("/notifications/missing/actions/snooze").status_code == 404


def test_invalid_bodies_are_422(backend):
    with TestClient(app) as client:
        assert client.post("/tasks/complete", json={"task_id": "x", "status": "done"}).status_code == 422
        assert client.patch("/preferences", json={"work_start": "19:00"}).status_code == 422


def test_preferences_update(backend):
    with TestClient(app) as client:
        r = client.patch("/preferences", json={"break_minutes": 10})
        assert r.status_code == 200
        assert r.json()["break_minutes"] == 10
        assert client.get("/preferences").json()["work_start"] == "09:00:00"


def test_reselecting_the_applied_candidate_reapplies(backend):
    with TestClient(app) as client:
        candidates = client.post("/schedule/generate", json={"day": "2025-03-03"}).json()["candidates"]
        chosen, other = candidates[0]["id"], candidates[1]["id"]

        first = client.post("/schedule/select", json={"candidate_id": chosen})
        assert first.status_code == 200
        again = client.post("/schedule/select", json={"candidate_id": chosen})
        assert again.status_code == 200
        assert again.json()["candidate_id"] == chosen
        # one event per task, not one per apply
        assert len(backend.calendar_store.events) == first.json()["events_created"]
        assert client.post("/schedule/select", json={"candidate_id": other}).status_code == 404


def test_partial_button_for_unscheduled_task_migrates(tmp_path):
    clock = FakeClock(at(8))
    source = InMemoryDataSource({COURSE_SCHEDULE: [], PRIORITY_TASKS: [], INCOMPLETE_TASKS: []})
    b = BackendAPI(
        sheets=PlannerSheets(source),
        calendar_store=InMemoryCalendarStore(),
        engine=NotificationTimerEngine(loop=FakeLoop(), clock=clock),
        preferences_store=PreferencesStore(str(tmp_path / "prefs.json")),
        completion_log=CompletionLogStore(str(tmp_path / "log.json")),
        clock=clock,
    )
    b.engine.schedule_task_end_notification("ghost", "Ghost task", at(10))

    result = asyncio.run(b.notification_action("end_ghost", "partial"))

    assert result["migrated"]["remaining_duration"] == 60
    assert result["migrated"]["progress"] == 50
    assert b.completion_log.load() == []
