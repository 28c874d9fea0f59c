from __future__ import annotations

import logging
import re
from datetime import date
from typing import List, Sequence, Union

from day_planner.models import BaseTask, FlexibleTask
from llm.schemas import ModificationPlan, NewTaskSpec, Unparseable
from normalization.priority import flexible_priority_score, normalize_label

logger = logging.getLogger(__name__)

DEFAULT_NEW_TASK_MINUTES = 60


def default_plan(message: str) -> ModificationPlan:
    """What an unusable reply degrades to: add the message itself as a task."""
    return ModificationPlan(
        action="add",
        new_task=NewTaskSpec(name=message.strip() or "New task", duration_minutes=DEFAULT_NEW_TASK_MINUTES),
    )


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")[:32] or "task"


def _new_task_id(name: str, existing: set[str]) -> str:
    base = f"chat_{_slug(name)}"
    task_id, n = base, 2
    while task_id in existing:
        task_id = f"{base}_{n}"
        n += 1
    return task_id


def apply_plan(
    plan: Union[ModificationPlan, Unparseable],
    tasks: Sequence[BaseTask],
    day: date,
    message: str = "",
) -> List[BaseTask]:
    """Return a new task list with ``plan`` applied; ``tasks`` is left untouched.

    Fixed tasks are never removed or moved. Rescheduled/modified tasks are
    unplaced so the packer can find them a new slot.
    """
    source = "agent"
    if isinstance(plan, Unparseable):
        logger.warning(f"Modification plan unusable ({plan.reason}); adding task from message")
        plan = default_plan(message)
        source = "user"

    affected = set(plan.affected_tasks)
    out: List[BaseTask] = []
    for task in tasks:
        task = task.model_copy(deep=True)
        if task.task_id in affected and not task.is_fixed:
            if plan.action == "remove":
                logger.info(f"Removing {task.task_id} on request")
                continue
            if plan.action in ("modify", "reschedule"):
                task = task.unplaced()
        elif task.task_id in affected:
            logger.info(f"Ignoring {plan.action} for fixed task {task.task_id}")
        out.append(task)

    # only "add" creates a task; newTask on other actions is ignored
    if plan.action == "add":
        spec = plan.new_task or default_plan(message).new_task
        label = normalize_label(spec.priority)
        out.append(
            FlexibleTask(
                task_id=_new_task_id(spec.name, {t.task_id for t in out}),
                name=spec.name,
                duration_minutes=spec.duration_minutes,
                priority_label=label,
                priority_score=flexible_priority_score(label, None, spec.targets, day, set()),
                targets=spec.targets or ["productivity"],
                source=source if plan.new_task is not None else "user",
                reschedule_policy="push",
            )
        )
    return out
