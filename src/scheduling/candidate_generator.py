from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from day_planner.models import (
    BaseTask,
    BusyInterval,
    FlexibleTask,
    RecurringTask,
    ScheduleCandidate,
    SchedulePayload,
    UserPreferences,
)
from llm.llm_client import LLMClient
from llm.prompts import schedule_prompt
from llm.schemas import CandidateReply, ReplyCandidate, ReplyTask
from scheduling.conflict_detector import ConflictDetector
from scheduling.greedy_packer import GreedyPacker, PackingConstraints

logger = logging.getLogger(__name__)

AGENT_VERSION = "1.0.0"

CONFLICT_PENALTY = 10
UNMET_PRIORITY_PENALTY = 5
# priority_weight("high") * 2
HIGH_PRIORITY_THRESHOLD = 60

STRATEGIES = ("priority", "deadline", "balanced", "shortest")

_EXPLANATIONS = {
    "priority": "Highest priority first, packed from the start of the working day",
    "deadline": "Nearest deadlines and carried-over work first",
    "balanced": "Rotates between goal targets so each gets time today",
    "shortest": "Quick wins first to build momentum, longer work later",
}


def unscheduled_message(task: BaseTask) -> str:
    return f'Task "{task.name}" ({task.task_id}) could not be scheduled within working hours'


def _on_day(start: datetime, day: date, tz: ZoneInfo) -> bool:
    try:
        return start.astimezone(tz).date() == day
    except OverflowError:
        return False


def score_candidate(conflict_count: int, unplaced: Iterable[BaseTask]) -> float:
    unmet = sum(1 for t in unplaced if t.priority_score >= HIGH_PRIORITY_THRESHOLD)
    score = 100 - CONFLICT_PENALTY * conflict_count - UNMET_PRIORITY_PENALTY * unmet
    return float(max(0, min(100, score)))


class CandidateGenerator:
    """Produces ranked full-day schedule candidates.

    Asks the reasoning service first when one is configured; any failure or
    unusable reply falls through to the deterministic packer, which always
    yields at least one candidate.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        detector: Optional[ConflictDetector] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.llm_client = llm_client
        self.detector = detector or ConflictDetector()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def generate(
        self,
        tasks: Sequence[BaseTask],
        busy_intervals: Sequence[BusyInterval],
        day: date,
        prefs: UserPreferences,
        count: Optional[int] = None,
    ) -> List[ScheduleCandidate]:
        count = count or prefs.candidate_count
        # private snapshot; callers keep ownership of their list
        tasks = [t.model_copy(deep=True) for t in tasks]
        busy = list(busy_intervals)

        if self.llm_client is not None:
            candidates = self._generate_with_llm(tasks, busy, day, prefs, count)
            if candidates:
                return candidates

        return self._generate_fallback(tasks, busy, day, prefs, count)

    # --- fallback ---

    def _generate_fallback(
        self,
        tasks: List[BaseTask],
        busy: List[BusyInterval],
        day: date,
        prefs: UserPreferences,
        count: int,
    ) -> List[ScheduleCandidate]:
        tz = ZoneInfo(prefs.timezone)
        packer = GreedyPacker(
            PackingConstraints(
                window_start=datetime.combine(day, prefs.work_start, tzinfo=tz),
                window_end=datetime.combine(day, prefs.work_end, tzinfo=tz),
                break_minutes=prefs.break_minutes,
                max_consecutive_minutes=prefs.max_consecutive_minutes,
            )
        )
        if count > len(STRATEGIES):
            logger.warning(f"Only {len(STRATEGIES)} packing strategies available, requested {count}")

        candidates = []
        for ordering in STRATEGIES[: max(1, count)]:
            result = packer.pack(tasks, busy, ordering=ordering)
            candidates.append(
                self._finalize(
                    candidate_id=f"fallback_{ordering}_{uuid.uuid4().hex[:8]}",
                    tasks=result.tasks,
                    busy=busy,
                    day=day,
                    prefs=prefs,
                    explanation=_EXPLANATIONS[ordering],
                    explainability=f"Fallback schedule ({ordering}): deterministic greedy packing",
                    strategy="fallback",
                )
            )
        logger.info(f"Generated {len(candidates)} fallback candidates for {day.isoformat()}")
        return self._rank(candidates)

    # --- reasoning service ---

    def _generate_with_llm(
        self,
        tasks: List[BaseTask],
        busy: List[BusyInterval],
        day: date,
        prefs: UserPreferences,
        count: int,
    ) -> List[ScheduleCandidate]:
        prompt = schedule_prompt(tasks, busy, day, prefs, count, self.clock())
        reply = self.llm_client.generate_candidates(prompt)
        if not isinstance(reply, CandidateReply):
            logger.warning(f"Falling back to greedy packer: {reply.reason}")
            return []

        by_id: Dict[str, BaseTask] = {t.task_id: t for t in tasks}
        candidates = []
        for index, rc in enumerate(reply.candidates[:count]):
            try:
                placed = self._reconcile(rc, by_id, day, prefs)
            except (ValidationError, ValueError, OverflowError) as e:
                logger.warning(f"Dropping AI candidate {index}: {e}")
                continue
            candidates.append(
                self._finalize(
                    candidate_id=rc.id or f"ai_{index + 1}_{uuid.uuid4().hex[:8]}",
                    tasks=placed,
                    busy=busy,
                    day=day,
                    prefs=prefs,
                    explanation=rc.explanation or reply.explanation or "AI-generated schedule",
                    explainability=rc.explainability or reply.reasoning or "AI-generated schedule",
                    strategy="ai",
                )
            )

        if not candidates:
            logger.warning("Reasoning service returned no usable candidates")
        return self._rank(candidates)

    def _reconcile(
        self, rc: ReplyCandidate, by_id: Dict[str, BaseTask], day: date, prefs: UserPreferences
    ) -> List[BaseTask]:
        """Map a reply onto our own tasks; fixed tasks always keep their input times."""
        tz = ZoneInfo(prefs.timezone)
        out: List[BaseTask] = []
        seen: set[str] = set()

        for rt in rc.tasks:
            if rt.task_id in seen:
                continue
            seen.add(rt.task_id)
            start = rt.start
            if start is not None and start.tzinfo is None:
                start = start.replace(tzinfo=tz)
            if start is not None and not _on_day(start, day, tz):
                logger.info(f"Ignoring off-day start {start.isoformat()} for {rt.task_id}")
                start = None

            known = by_id.get(rt.task_id)
            if known is not None:
                if known.is_fixed:
                    out.append(known)
                elif start is None:
                    out.append(known.unplaced())
                else:
                    out.append(known.placed_at(start))
                continue
            out.append(self._agent_task(rt, start))

        # anything the reply forgot is kept: fixed as-is, the rest unplaced
        for task_id, task in by_id.items():
            if task_id not in seen:
                out.append(task if task.is_fixed else task.unplaced())
        return out

    @staticmethod
    def _agent_task(rt: ReplyTask, start: Optional[datetime]) -> BaseTask:
        model = RecurringTask if rt.type == "recurring" else FlexibleTask
        return model(
            task_id=rt.task_id,
            name=rt.name,
            start=start,
            duration_minutes=rt.duration_minutes,
            priority_score=min(rt.priority_score, 99),
            targets=rt.targets,
            notes=rt.notes or "",
            source="agent",
        )

    # --- shared ---

    def _finalize(
        self,
        *,
        candidate_id: str,
        tasks: List[BaseTask],
        busy: List[BusyInterval],
        day: date,
        prefs: UserPreferences,
        explanation: str,
        explainability: str,
        strategy: str,
    ) -> ScheduleCandidate:
        conflicts = self.detector.detect(tasks, busy)
        unplaced = [t for t in tasks if not t.is_resolved]
        messages = [c.describe() for c in conflicts] + [unscheduled_message(t) for t in unplaced]

        payload = SchedulePayload(
            user_id=prefs.user_id,
            date=day,
            timezone=prefs.timezone,
            tasks=tasks,
            generated_at=self.clock(),
            agent_version=AGENT_VERSION,
            explainability=explainability,
        )
        return ScheduleCandidate(
            id=candidate_id,
            schedule=payload,
            score=score_candidate(len(messages), unplaced),
            explanation=explanation,
            conflicts=messages,
            strategy=strategy,
        )

    @staticmethod
    def _rank(candidates: List[ScheduleCandidate]) -> List[ScheduleCandidate]:
        # stable: equal scores keep strategy order
        return sorted(candidates, key=lambda c: -c.score)
