"""Pydantic models for repair actions and repair-loop results."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from resume_fit.models.plan import ResumePlan, SelectedBullet
from resume_fit.models.validation import RenderedDocument, Violation


class RepairActionType(str, Enum):
    SHORTEN_BULLET = "shorten_bullet"
    REPHRASE_BULLET = "rephrase_bullet"  # remove a forbidden phrase
    REVERT_BULLET = "revert_bullet"
    DROP_BULLET = "drop_bullet"
    DROP_STORY = "drop_story"
    NARROW_BUDGET = "narrow_budget"


class RepairAction(BaseModel):
    type: RepairActionType
    reason: str
    bullet_id: str | None = None
    story_id: str | None = None
    target_chars: int | None = None
    phrases: list[str] = []
    max_lines: int | None = None  # new line cap for NARROW_BUDGET


class RepairState(str, Enum):
    PLANNED = "planned"
    RENDERED = "rendered"
    VALIDATED = "validated"
    REPAIRING = "repairing"
    RESOLVED = "resolved"
    EXHAUSTED = "exhausted"  # iteration ceiling reached with violations left
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({RepairState.RESOLVED, RepairState.EXHAUSTED, RepairState.CANCELLED})


class RepairOutcome(BaseModel):
    state: RepairState
    plan: ResumePlan
    bullets: list[SelectedBullet]
    violations: list[Violation] = []
    document: RenderedDocument | None = None
    iterations: int = 0  # repair batches applied
    cycles: int = 0  # render/validate cycles run
    actions: list[RepairAction] = []

    @property
    def resolved(self) -> bool:
        return self.state == RepairState.RESOLVED

    @property
    def cancelled(self) -> bool:
        return self.state == RepairState.CANCELLED
