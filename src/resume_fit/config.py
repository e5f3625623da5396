"""Application configuration loaded from config.yaml."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from resume_fit.errors import ConfigurationError
from resume_fit.models.plan import SectionBudget, SpaceBudget
from resume_fit.models.validation import ValidationConstraints


@dataclass(frozen=True)
class LLMConfig:
    judge_model: str = "claude-haiku-4-5-20251001"
    rewrite_model: str = "claude-sonnet-4-5-20250929"
    max_retries: int = 3
    timeout: int = 60

    def __post_init__(self) -> None:
        if not 1 <= self.timeout <= 600:
            raise ValueError(f"llm.timeout must be between 1 and 600, got {self.timeout}")
        if not 1 <= self.max_retries <= 10:
            raise ValueError(f"llm.max_retries must be between 1 and 10, got {self.max_retries}")


@dataclass(frozen=True)
class ScoringConfig:
    skill_weight: float = 0.4
    keyword_weight: float = 0.3
    evidence_weight: float = 0.3
    judgment_weight: float = 0.5  # share of the judge score in the blended score
    tier_low: float = 0.3
    tier_medium: float = 0.6
    tier_high: float = 1.0

    def __post_init__(self) -> None:
        for name in ("skill_weight", "keyword_weight", "evidence_weight"):
            if getattr(self, name) < 0:
                raise ValueError(f"scoring.{name} must be non-negative")
        if not 0.0 <= self.judgment_weight <= 1.0:
            raise ValueError("scoring.judgment_weight must be between 0 and 1")

    @property
    def tier_values(self) -> dict[str, float]:
        return {"low": self.tier_low, "medium": self.tier_medium, "high": self.tier_high}


@dataclass(frozen=True)
class SelectionConfig:
    chars_per_line: int = 100
    redundancy_factor: float = 0.5
    max_bullets: int = 12
    max_lines: int = 40
    top_skills_limit: int = 10
    sections: dict = field(default_factory=dict)  # name -> {max_bullets, max_lines}

    def __post_init__(self) -> None:
        if self.chars_per_line <= 0:
            raise ConfigurationError("selection.chars_per_line must be positive")
        if not 0.0 <= self.redundancy_factor <= 1.0:
            raise ConfigurationError("selection.redundancy_factor must be between 0 and 1")
        # Fails fast on non-positive caps
        self.space_budget().check()

    def space_budget(self) -> SpaceBudget:
        return SpaceBudget(
            max_bullets=self.max_bullets,
            max_lines=self.max_lines,
            sections={name: SectionBudget(**caps) for name, caps in self.sections.items()},
        )


@dataclass(frozen=True)
class ValidationConfig:
    max_pages: int = 1
    max_chars_per_line: int = 110
    lines_per_page: int = 55
    forbidden_phrases: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.max_pages < 1:
            raise ValueError("validation.max_pages must be at least 1")
        if self.max_chars_per_line < 1:
            raise ValueError("validation.max_chars_per_line must be at least 1")
        if self.lines_per_page < 1:
            raise ValueError("validation.lines_per_page must be at least 1")
        # YAML gives lists; keep the dataclass hashable
        object.__setattr__(self, "forbidden_phrases", tuple(self.forbidden_phrases))

    def constraints(self) -> ValidationConstraints:
        return ValidationConstraints(
            max_pages=self.max_pages,
            max_chars_per_line=self.max_chars_per_line,
            lines_per_page=self.lines_per_page,
            forbidden_phrases=list(self.forbidden_phrases),
        )


@dataclass(frozen=True)
class RepairConfig:
    max_iterations: int = 5
    step_attempts: int = 3
    retry_min_wait: float = 0.5
    retry_max_wait: float = 4.0

    def __post_init__(self) -> None:
        if not 0 <= self.max_iterations <= 20:
            raise ValueError(
                f"repair.max_iterations must be between 0 and 20, got {self.max_iterations}"
            )
        if self.step_attempts < 1:
            raise ValueError("repair.step_attempts must be at least 1")
        if self.retry_min_wait < 0 or self.retry_max_wait < self.retry_min_wait:
            raise ValueError("repair.retry_min_wait/retry_max_wait are inconsistent")


@dataclass(frozen=True)
class StorageConfig:
    db_path: str = "~/.resume-fit/artifacts.db"

    @property
    def resolved_db_path(self) -> Path:
        return Path(self.db_path).expanduser()


@dataclass(frozen=True)
class AppConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    repair: RepairConfig = field(default_factory=RepairConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from YAML file, falling back to defaults."""
    if path is None:
        candidate = Path.cwd() / "config.yaml"
        if candidate.exists():
            path = candidate

    raw: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text()) or {}

    return AppConfig(
        llm=LLMConfig(**raw.get("llm", {})),
        scoring=ScoringConfig(**raw.get("scoring", {})),
        selection=SelectionConfig(**raw.get("selection", {})),
        validation=ValidationConfig(**raw.get("validation", {})),
        repair=RepairConfig(**raw.get("repair", {})),
        storage=StorageConfig(**raw.get("storage", {})),
    )
