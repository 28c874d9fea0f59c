from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from conftest import DAY, at
from day_planner.errors import ExternalStoreError
from integration.base import CalendarEventRequest
from integration.calendar_integration import CalendarIntegration
from integration.sheets_integration import SheetsDataSource


def _calendar_with(items):
    cal = CalendarIntegration(credentials=None)
    service = MagicMock()
    service.events.return_value.list.return_value.execute.return_value = {"items": items}
    service.events.return_value.insert.return_value.execute.return_value = {"id": "new_ev"}
    service.events.return_value.update.return_value.execute.return_value = {"id": "old_ev"}
    cal._calendar = service
    return cal, service


def test_list_events_skips_all_day_and_cancelled():
    cal, _ = _calendar_with(
        [
            {"id": "a", "summary": "Dentist",
             "start": {"dateTime": "2025-03-03T14:00:00+05:30"},
             "end": {"dateTime": "2025-03-03T15:00:00+05:30"}},
            {"id": "b", "summary": "Holiday", "start": {"date": "2025-03-03"}, "end": {"date": "2025-03-04"}},
            {"id": "c", "status": "cancelled",
             "start": {"dateTime": "2025-03-03T16:00:00Z"}, "end": {"dateTime": "2025-03-03T17:00:00Z"}},
            {"id": "d", "summary": "Report",
             "start": {"dateTime": "2025-03-03T10:30:00+05:30"},
             "end": {"dateTime": "2025-03-03T12:30:00+05:30"},
             "extendedProperties": {"private": {"planner_task_id": "report"}}},
        ]
    )
    events = cal.list_events(at(0), at(23))
    assert [e.event_id for e in events] == ["a", "d"]
    assert events[0].start == at(14)
    assert events[1].task_id == "report"


def _request():
    return CalendarEventRequest(
        task_id="report", day=DAY, summary="Report", start=at(10), end=at(11), timezone="Asia/Kolkata"
    )


def test_create_event_inserts_when_missing():
    cal, service = _calendar_with([])
    assert cal.create_event(_request()) == "new_ev"
    body = service.events.return_value.insert.call_args.kwargs["body"]
    assert body["extendedProperties"]["private"]["planner_task_id"] == "report"


def test_create_event_updates_existing_booking():
    cal, service = _calendar_with([{"id": "old_ev"}])
    assert cal.create_event(_request()) == "old_ev"
    assert not service.events.return_value.insert.called


def test_sheets_ranges_are_quoted():
    source = SheetsDataSource("sheet-id")
    service = MagicMock()
    values = service.spreadsheets.return_value.values.return_value
    values.get.return_value.execute.return_value = {"values": [["header"], ["row1"]]}
    source._service = service

    assert source.read_rows("Priority Tasks") == [["row1"]]
    assert values.get.call_args.kwargs["range"] == "'Priority Tasks'"

    source.update_row("Incomplete Tasks", 0, ["a"])
    assert values.update.call_args.kwargs["range"] == "'Incomplete Tasks'!A2"


def test_http_errors_become_store_errors():
    cal, service = _calendar_with([])
    service.events.return_value.list.return_value.execute.side_effect = HttpError(
        httplib2.Response({"status": 503}), b"backend error"
    )
    with pytest.raises(ExternalStoreError):
        cal.list_events(at(0), at(23))
