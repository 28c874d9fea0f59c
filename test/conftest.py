from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from day_planner.models import FixedTask, FlexibleTask, IncompleteTask

IST = ZoneInfo("Asia/Kolkata")
DAY = date(2025, 3, 3)  # a Monday


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(DAY.year, DAY.month, DAY.day, hour, minute, tzinfo=IST)


class FakeProvider:
    def __init__(self, response_text: str):
        self._response_text = response_text
        self.calls = []

    def generate(self, *, system: str, user: str) -> str:
        self.calls.append(user)
        return self._response_text


class FailingProvider:
    def generate(self, *, system: str, user: str) -> str:
        raise ConnectionError("reasoning service down")


class FakeHandle:
    def __init__(self, delay, callback, args):
        self.delay = delay
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback(*self.args)


class FakeLoop:
    """Records call_later instead of waiting; tests fire handles by hand."""

    def __init__(self):
        self.handles = []

    def call_later(self, delay, callback, *args):
        handle = FakeHandle(delay, callback, args)
        self.handles.append(handle)
        return handle

    def active(self):
        return [h for h in self.handles if not h.cancelled]


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def fake_provider_factory():
    def _make(response_text: str):
        return FakeProvider(response_text)
    return _make


@pytest.fixture
def fake_loop():
    return FakeLoop()


@pytest.fixture
def clock():
    return FakeClock(at(8, 0))


@pytest.fixture
def sample_tasks():
    return [
        FixedTask(task_id="course_0", name="Algorithms", start=at(9), end=at(10, 30), duration_minutes=90),
        FlexibleTask(task_id="report", name="Write report", duration_minutes=120, priority_label="high", priority_score=60),
        IncompleteTask(task_id="essay", name="Essay draft", duration_minutes=60, priority_score=50),
    ]
