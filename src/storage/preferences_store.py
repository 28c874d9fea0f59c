from __future__ import annotations

import json
import logging
from datetime import time
from pathlib import Path
from typing import Any, Dict

from day_planner.models import UserPreferences

logger = logging.getLogger(__name__)

TIME_FIELDS = ("work_start", "work_end", "sleep_start", "sleep_end")


def _time_to_str(t: time) -> str:
    return t.strftime("%H:%M")


def _str_to_time(s: str) -> time:
    h, m = map(int, s.split(":"))
    return time(h, m)


def times_from_json(data: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(data)
    for key in TIME_FIELDS:
        if isinstance(data.get(key), str):
            data[key] = _str_to_time(data[key])
    return data


class PreferencesStore:
    def __init__(self, path: str = "data/preferences.json"):
        self.path = Path(path)

    def load(self) -> UserPreferences:
        try:
            if not self.path.exists():
                return UserPreferences()

            data = json.loads(self.path.read_text(encoding="utf-8"))
            return UserPreferences(**times_from_json(data))
        except Exception as e:
            logger.warning(f"Unreadable preferences at {self.path}, using defaults: {e}")
            return UserPreferences()

    def save(self, prefs: UserPreferences) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        data = prefs.model_dump()
        # time objects are stored as HH:MM
        for key in TIME_FIELDS:
            if isinstance(data.get(key), time):
                data[key] = _time_to_str(data[key])

        self.path.write_text(
            json.dumps(data, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )

    def update(self, changes: Dict[str, Any]) -> UserPreferences:
        """Merge ``changes`` into the stored preferences; validation errors propagate."""
        current = self.load().model_dump()
        current.update(times_from_json(changes))
        prefs = UserPreferences(**current)
        self.save(prefs)
        return prefs
