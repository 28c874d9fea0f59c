from __future__ import annotations

import json
from datetime import date, datetime
from typing import Iterable, Sequence

from day_planner.models import BaseTask, BusyInterval, SchedulePayload, UserPreferences

SYSTEM_PROMPT = (
    "You are an intelligent scheduling assistant that creates optimized daily schedules. "
    "Answer with JSON only."
)


def _task_line(task: BaseTask) -> dict:
    return task.model_dump(mode="json", exclude_none=True)


def schedule_prompt(
    tasks: Sequence[BaseTask],
    busy_intervals: Iterable[BusyInterval],
    day: date,
    prefs: UserPreferences,
    count: int,
    now: datetime,
) -> str:
    busy = [b.model_dump(mode="json", exclude_none=True) for b in busy_intervals]
    return f"""Generate {count} optimized daily schedule candidates for {day.isoformat()}.

CONSTRAINTS:
- Timezone: {prefs.timezone}
- Work hours: {prefs.work_start.strftime('%H:%M')} - {prefs.work_end.strftime('%H:%M')}
- Sleep window: {prefs.sleep_start.strftime('%H:%M')} - {prefs.sleep_end.strftime('%H:%M')}
- Break duration: {prefs.break_minutes} minutes between tasks
- Max consecutive work: {prefs.max_consecutive_minutes} minutes

TASKS TO SCHEDULE:
{json.dumps([_task_line(t) for t in tasks], indent=2)}

EXISTING CALENDAR EVENTS:
{json.dumps(busy, indent=2)}

REQUIREMENTS:
1. Fixed tasks cannot be moved
2. Optimize for priority_score and target fulfillment (critical > high > medium > low)
3. Incomplete tasks from previous days should be prioritized to catch up
4. Include buffer time between tasks and respect working hours
5. Provide an explanation for each candidate and identify any conflicts

Return JSON with structure:
{{
  "explanation": "Brief explanation of the scheduling approach",
  "reasoning": "Why these schedules were chosen",
  "candidates": [
    {{
      "id": "candidate_1",
      "schedule": {{
        "user_id": "{prefs.user_id}",
        "date": "{day.isoformat()}",
        "timezone": "{prefs.timezone}",
        "tasks": [{{"task_id": "...", "name": "...", "type": "fixed|flexible|incomplete|recurring",
                   "start": "ISO8601 with offset", "end": "ISO8601 with offset",
                   "duration_minutes": 60, "priority_score": 50, "targets": [],
                   "reschedule_policy": "push|split|drop"}}],
        "generated_at": "{now.isoformat()}",
        "agent_version": "1.0.0",
        "explainability": "Short explanation of scheduling decisions"
      }},
      "score": 85,
      "explanation": "Detailed explanation of this candidate",
      "conflicts": []
    }}
  ]
}}
"""


def modification_prompt(message: str, schedule: SchedulePayload) -> str:
    current = schedule.model_dump(mode="json", exclude_none=True)
    return f"""You are an AI scheduling assistant. The user wants to modify their current schedule with this request: "{message}"

Current Schedule:
{json.dumps(current, indent=2)}

Analyze the request and provide a modification plan with:
1. What needs to be changed
2. Which tasks are affected (by task_id)
3. The new task to add, if any
4. Suggestions for resolving conflicts

Return JSON format:
{{
  "action": "add|modify|remove|reschedule",
  "affectedTasks": [],
  "newTask": {{"name": "...", "duration_minutes": 60, "priority": "medium", "targets": []}},
  "suggestions": []
}}
"""
