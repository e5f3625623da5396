"""Pydantic models for the selection contract (resume plan)."""

from __future__ import annotations

from pydantic import BaseModel

from resume_fit.errors import ConfigurationError


class SectionBudget(BaseModel):
    max_bullets: int | None = None
    max_lines: int | None = None


class SpaceBudget(BaseModel):
    max_bullets: int
    max_lines: int
    sections: dict[str, SectionBudget] = {}

    def check(self) -> None:
        """Raise ConfigurationError unless every declared cap is strictly positive."""
        if self.max_bullets <= 0:
            raise ConfigurationError(f"max_bullets must be positive, got {self.max_bullets}")
        if self.max_lines <= 0:
            raise ConfigurationError(f"max_lines must be positive, got {self.max_lines}")
        for name, section in self.sections.items():
            for field_name in ("max_bullets", "max_lines"):
                value = getattr(section, field_name)
                if value is not None and value <= 0:
                    raise ConfigurationError(
                        f"sections.{name}.{field_name} must be positive, got {value}"
                    )


class SelectedStory(BaseModel):
    story_id: str
    bullet_ids: list[str]
    section: str = "experience"
    estimated_lines: int = 0


class Coverage(BaseModel):
    top_skills_covered: list[str] = []
    coverage_score: float = 0.0


class ResumePlan(BaseModel):
    """Selector output; mutated in place by the repair loop."""

    space_budget: SpaceBudget
    selected_stories: list[SelectedStory] = []
    coverage: Coverage = Coverage()

    def bullet_ids(self) -> list[str]:
        return [bid for story in self.selected_stories for bid in story.bullet_ids]

    @property
    def total_bullets(self) -> int:
        return sum(len(story.bullet_ids) for story in self.selected_stories)

    @property
    def total_lines(self) -> int:
        return sum(story.estimated_lines for story in self.selected_stories)

    def story_of(self, bullet_id: str) -> SelectedStory | None:
        for story in self.selected_stories:
            if bullet_id in story.bullet_ids:
                return story
        return None


class SelectedBullet(BaseModel):
    """Materialized bullet content keyed by plan references. Read-only."""

    model_config = {"frozen": True}

    id: str
    story_id: str
    text: str
    skills: list[str] = []
    metrics: str | None = None
    length_chars: int = 0
