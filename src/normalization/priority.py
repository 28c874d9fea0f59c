from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Iterable, Optional

from day_planner.models import FIXED_PRIORITY_SCORE

# critical > high > medium > low
PRIORITY_WEIGHTS = {
    "critical": 40,
    "high": 30,
    "medium": 20,
    "low": 10,
}
DEFAULT_PRIORITY_LABEL = "medium"

# "today is day N+1, catch up"
CARRYOVER_BONUS = 10

URGENCY_CAP = 15
URGENCY_HORIZON_DAYS = 7

TARGET_BONUS = 2
TARGET_CAP = 4

# anything below the fixed score stays displaceable by fixed commitments
MAX_SCHEDULABLE_SCORE = FIXED_PRIORITY_SCORE - 1


def normalize_label(label: Optional[str]) -> str:
    v = (label or "").strip().lower()
    return v if v in PRIORITY_WEIGHTS else DEFAULT_PRIORITY_LABEL


def priority_weight(label: Optional[str]) -> int:
    return PRIORITY_WEIGHTS[normalize_label(label)]


def deadline_urgency(due_date: Optional[date], today: date) -> int:
    """Urgency grows as the due date approaches.

    0 without a due date or beyond the horizon, ``URGENCY_CAP`` when the task
    is due today or overdue, and linear in between.
    """
    if due_date is None:
        return 0
    days_left = (due_date - today).days
    if days_left <= 0:
        return URGENCY_CAP
    if days_left > URGENCY_HORIZON_DAYS:
        return 0
    step = URGENCY_CAP / (URGENCY_HORIZON_DAYS + 1)
    return int(round(URGENCY_CAP - step * days_left))


def underserved_targets(target_lists: Iterable[Iterable[str]]) -> set[str]:
    """Targets carried by the fewest tasks in the current load."""
    counts = Counter(t for targets in target_lists for t in set(targets))
    if not counts:
        return set()
    least = min(counts.values())
    if least == max(counts.values()):
        # every target is equally served; nobody gets a bonus
        return set()
    return {t for t, c in counts.items() if c == least}


def target_weight(targets: Iterable[str], underserved: set[str]) -> int:
    hits = sum(1 for t in set(targets) if t in underserved)
    return min(TARGET_CAP, hits * TARGET_BONUS)


def base_priority_score(label: Optional[str]) -> int:
    return priority_weight(label) * 2


def flexible_priority_score(
    label: Optional[str],
    due_date: Optional[date],
    targets: Iterable[str],
    today: date,
    underserved: set[str],
) -> float:
    score = (
        base_priority_score(label)
        + deadline_urgency(due_date, today)
        + target_weight(targets, underserved)
    )
    return float(min(score, MAX_SCHEDULABLE_SCORE))


def incomplete_priority_score(label: Optional[str]) -> float:
    return float(min(base_priority_score(label) + CARRYOVER_BONUS, MAX_SCHEDULABLE_SCORE))
