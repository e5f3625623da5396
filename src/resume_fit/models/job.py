"""Pydantic models for job requirements."""

from __future__ import annotations

from pydantic import BaseModel, Field


class Requirement(BaseModel):
    """A required or preferred skill extracted from a job posting."""

    model_config = {"frozen": True}

    skill: str
    weight: float = Field(default=1.0, ge=0.0)
    source: str = "hard_requirement"  # "hard_requirement" | "nice_to_have" | "keyword"
    evidence: str = ""


class JobRequirements(BaseModel):
    model_config = {"frozen": True}

    skills: list[Requirement]
    keywords: list[str] = []
    role_title: str = ""
    company: str = ""

    def skill_weights(self) -> dict[str, float]:
        """Map skill name -> weight, keeping the max weight for duplicates."""
        weights: dict[str, float] = {}
        for req in self.skills:
            if req.skill not in weights or req.weight > weights[req.skill]:
                weights[req.skill] = req.weight
        return weights

    @property
    def total_weight(self) -> float:
        return sum(self.skill_weights().values())
