import logging
import os
from typing import Optional

from google.oauth2.credentials import Credentials

from api import state
from api.backend import BackendAPI
from integration.base import CalendarStore, TabularDataSource
from integration.calendar_integration import CalendarIntegration
from integration.memory_stores import InMemoryCalendarStore, InMemoryDataSource
from integration.planner_sheets import PlannerSheets
from integration.sheets_integration import SheetsDataSource
from llm.llm_client import LLMClient, provider_from_env
from notifications.timer_engine import NotificationTimerEngine
from storage.completion_log_store import CompletionLogStore
from storage.preferences_store import PreferencesStore

logger = logging.getLogger(__name__)

# Configuration
GOOGLE_CREDENTIALS_FILE = os.getenv("GOOGLE_CREDENTIALS_FILE", "").strip()
SPREADSHEET_ID = os.getenv("SPREADSHEET_ID", "").strip()
CALENDAR_ID = os.getenv("CALENDAR_ID", "primary")
TASKLIST_ID = os.getenv("TASKLIST_ID", "@default")
PREFERENCES_PATH = os.getenv("PREFERENCES_PATH", "data/preferences.json")
COMPLETION_LOG_PATH = os.getenv("COMPLETION_LOG_PATH", "data/completions.json")
FEEDBACK_DELAY_S = float(os.getenv("FEEDBACK_DELAY_S", "1.0"))

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/tasks",
]


def load_credentials() -> Optional[Credentials]:
    if not GOOGLE_CREDENTIALS_FILE:
        return None
    try:
        return Credentials.from_authorized_user_file(GOOGLE_CREDENTIALS_FILE, SCOPES)
    except (OSError, ValueError) as e:
        logger.error(f"Could not load Google credentials from {GOOGLE_CREDENTIALS_FILE}: {e}")
        return None


def build_backend() -> BackendAPI:
    credentials = load_credentials()

    source: TabularDataSource
    calendar: CalendarStore
    if credentials is not None and SPREADSHEET_ID:
        source = SheetsDataSource(SPREADSHEET_ID, credentials)
    else:
        logger.warning("No spreadsheet configured, using in-memory sheets")
        source = InMemoryDataSource()
    if credentials is not None:
        calendar = CalendarIntegration(credentials, CALENDAR_ID, TASKLIST_ID)
    else:
        logger.warning("No Google credentials, using in-memory calendar")
        calendar = InMemoryCalendarStore()

    provider = provider_from_env()
    return BackendAPI(
        sheets=PlannerSheets(source),
        calendar_store=calendar,
        engine=NotificationTimerEngine(),
        preferences_store=PreferencesStore(PREFERENCES_PATH),
        completion_log=CompletionLogStore(COMPLETION_LOG_PATH),
        llm_client=LLMClient(provider) if provider is not None else None,
        feedback_delay_s=FEEDBACK_DELAY_S,
    )


def get_backend() -> BackendAPI:
    if state.backend is None:
        state.backend = build_backend()
    return state.backend
