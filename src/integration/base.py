from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel

from day_planner.models import BusyInterval

DELETE_UNSUPPORTED = "unsupported"


class CalendarEventRequest(BaseModel):
    task_id: str
    day: date
    summary: str
    description: str = ""
    start: datetime
    end: datetime
    timezone: str


class TrackedTaskRequest(BaseModel):
    task_id: str
    day: date
    title: str
    notes: str = ""
    due: datetime


class CalendarStore(ABC):
    """Holds external events and persisted tasks.

    Writes are upserts keyed by (task_id, day) so a retried or re-applied
    schedule never duplicates bookings.
    """

    @abstractmethod
    def create_event(self, event: CalendarEventRequest) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def create_tracked_task(self, task: TrackedTaskRequest) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def list_events(self, start: datetime, end: datetime) -> List[BusyInterval]:
        raise NotImplementedError

    @abstractmethod
    def complete_tracked_task(self, task_id: str, day: date) -> bool:
        raise NotImplementedError


class TabularDataSource(ABC):
    """Row store for the input sheets. ``read_rows`` omits the header row."""

    @abstractmethod
    def read_rows(self, sheet: str) -> List[List[str]]:
        raise NotImplementedError

    @abstractmethod
    def append_row(self, sheet: str, row: List[str]) -> None:
        raise NotImplementedError

    @abstractmethod
    def update_row(self, sheet: str, row_index: int, row: List[str]) -> None:
        raise NotImplementedError

    def delete_row(self, sheet: str, row_index: int) -> str:
        return DELETE_UNSUPPORTED
