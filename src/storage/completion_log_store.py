from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class CompletionEntry(BaseModel):
    task_id: str
    name: str = ""
    actual_duration_minutes: Optional[int] = None
    completed_at: datetime
    notes: Optional[str] = None


class CompletionLogStore:
    """Append-only JSON log of finished tasks, read back for analytics."""

    def __init__(self, path: str = "data/completions.json"):
        self.path = Path(path)

    def load(self) -> List[CompletionEntry]:
        """
        Load all entries. Returns an empty list if the file is missing or invalid.
        """
        try:
            if not self.path.exists():
                return []
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return [CompletionEntry(**item) for item in data]
        except Exception as e:
            logger.warning(f"Unreadable completion log at {self.path}: {e}")
            return []

    def append(self, entry: CompletionEntry) -> None:
        entries = self.load()
        entries.append(entry)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps([e.model_dump(mode="json") for e in entries], ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
