"""Pydantic models for scoring and ranking output."""

from __future__ import annotations

from pydantic import BaseModel, Field


class StoryScore(BaseModel):
    """Deterministic relevance components for one story."""

    skill_overlap: float = 0.0
    keyword_overlap: float = 0.0
    evidence_strength: float = 0.0
    heuristic_score: float = 0.0
    matched_skills: list[str] = []


class Judgment(BaseModel):
    """Relevance verdict returned by the judgment service."""

    score: float = Field(ge=0.0, le=1.0)
    rationale: str = ""


class RankedStory(BaseModel):
    story_id: str
    relevance_score: float  # blended final score used for ordering
    heuristic_score: float
    judgment_score: float | None = None  # None when the judge was unavailable
    skill_overlap: float = 0.0
    keyword_overlap: float = 0.0
    evidence_strength: float = 0.0
    matched_skills: list[str] = []
    notes: str = ""
    judgment_rationale: str = ""
