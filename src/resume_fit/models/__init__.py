"""Data models for the resume selection and repair engine."""

from resume_fit.models.experience import Bullet, EvidenceTier, Story
from resume_fit.models.job import JobRequirements, Requirement
from resume_fit.models.plan import (
    Coverage,
    ResumePlan,
    SectionBudget,
    SelectedBullet,
    SelectedStory,
    SpaceBudget,
)
from resume_fit.models.ranking import Judgment, RankedStory, StoryScore
from resume_fit.models.repair import (
    RepairAction,
    RepairActionType,
    RepairOutcome,
    RepairState,
)
from resume_fit.models.validation import (
    RenderDiagnostic,
    RenderedDocument,
    ValidationConstraints,
    Violation,
    ViolationType,
)

__all__ = [
    "Bullet",
    "Coverage",
    "EvidenceTier",
    "JobRequirements",
    "Judgment",
    "RankedStory",
    "RenderDiagnostic",
    "RenderedDocument",
    "RepairAction",
    "RepairActionType",
    "RepairOutcome",
    "RepairState",
    "Requirement",
    "ResumePlan",
    "SectionBudget",
    "SelectedBullet",
    "SelectedStory",
    "SpaceBudget",
    "Story",
    "StoryScore",
    "ValidationConstraints",
    "Violation",
    "ViolationType",
]
