from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, model_validator

from day_planner.models import MAX_TASK_MINUTES


class ReplyTask(BaseModel):
    """A task as the reasoning service writes it back; loosely typed on purpose."""
    task_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    type: str = "flexible"
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    duration_minutes: int = Field(default=60, gt=0)
    priority_score: float = Field(default=50, ge=0)
    targets: List[str] = Field(default_factory=list)
    fixed: bool = False
    notes: Optional[str] = None
    source: str = "agent"
    reschedule_policy: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def accept_kind_alias(cls, data):
        if isinstance(data, dict) and "type" not in data and "kind" in data:
            data = {**data, "type": data["kind"]}
        return data


class ReplyCandidate(BaseModel):
    id: Optional[str] = None
    user_id: Optional[str] = None
    date: Optional[str] = None
    timezone: Optional[str] = None
    tasks: List[ReplyTask] = Field(default_factory=list)
    generated_at: Optional[datetime] = None
    agent_version: Optional[str] = None
    explainability: Optional[str] = None
    explanation: Optional[str] = None
    score: Optional[float] = None
    priority_score: Optional[float] = None
    conflicts: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def flatten_schedule(cls, data):
        # both {"schedule": {...}, "score": ..} and a bare schedule are accepted
        if isinstance(data, dict) and isinstance(data.get("schedule"), dict):
            inner = data["schedule"]
            data = {**inner, **{k: v for k, v in data.items() if k != "schedule"}}
        return data


class CandidateReply(BaseModel):
    explanation: str = ""
    reasoning: str = ""
    candidates: List[ReplyCandidate] = Field(default_factory=list)


class NewTaskSpec(BaseModel):
    name: str = Field(..., min_length=1)
    duration_minutes: int = Field(default=60, gt=0, le=MAX_TASK_MINUTES)
    priority: str = "medium"
    targets: List[str] = Field(default_factory=list)


class ModificationPlan(BaseModel):
    action: Literal["add", "modify", "remove", "reschedule"] = "add"
    affected_tasks: List[str] = Field(default_factory=list, alias="affectedTasks")
    new_task: Optional[NewTaskSpec] = Field(default=None, alias="newTask")
    suggestions: List[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


@dataclass(frozen=True)
class Unparseable:
    """The reasoning service answered with something we cannot use (or not at all)."""
    reason: str
    raw: str = ""
