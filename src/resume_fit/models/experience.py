"""Pydantic models for the normalized experience bank."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class EvidenceTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Bullet(BaseModel):
    """A single accomplishment line. Immutable once normalized."""

    model_config = {"frozen": True}

    id: str
    text: str
    skills: list[str] = []
    evidence_strength: EvidenceTier = EvidenceTier.MEDIUM
    length_chars: int = Field(ge=0)
    metrics: str | None = None


class Story(BaseModel):
    """A job or role period owning an ordered set of bullets."""

    model_config = {"frozen": True}

    id: str
    company: str = ""
    role: str = ""
    start_date: str | None = None  # "YYYY-MM"
    end_date: str | None = None
    section: str = "experience"
    bullets: list[Bullet] = []

    @property
    def skills(self) -> set[str]:
        return {skill for bullet in self.bullets for skill in bullet.skills}

    def bullet(self, bullet_id: str) -> Bullet | None:
        for bullet in self.bullets:
            if bullet.id == bullet_id:
                return bullet
        return None
