"""Deterministic relevance scoring of one story against job requirements."""

from __future__ import annotations

from resume_fit.config import ScoringConfig
from resume_fit.models.experience import Story
from resume_fit.models.job import JobRequirements
from resume_fit.models.ranking import StoryScore

DEFAULT_SCORING = ScoringConfig()


def skill_overlap(story: Story, requirements: JobRequirements) -> tuple[float, list[str]]:
    """Weighted share of required skills the story's bullets are tagged with.

    Returns the overlap (0-1) and the matched skill names in sorted order.
    """
    weights = requirements.skill_weights()
    total = requirements.total_weight
    if total <= 0:
        return 0.0, []
    matched = sorted(skill for skill in story.skills if skill in weights)
    return sum(weights[s] for s in matched) / total, matched


def keyword_overlap(story: Story, requirements: JobRequirements) -> float:
    """Share of job keywords found (case-insensitively) in the story's bullet text."""
    keywords = [k.strip().lower() for k in requirements.keywords if k and k.strip()]
    if not keywords:
        return 0.0
    text = " ".join(bullet.text for bullet in story.bullets).lower()
    matches = sum(1 for keyword in keywords if keyword in text)
    return matches / len(keywords)


def evidence_strength(story: Story, config: ScoringConfig = DEFAULT_SCORING) -> float:
    """Strongest evidence tier across the story's bullets."""
    tiers = config.tier_values
    return max((tiers[bullet.evidence_strength.value] for bullet in story.bullets), default=0.0)


def score(
    story: Story,
    requirements: JobRequirements,
    config: ScoringConfig = DEFAULT_SCORING,
) -> StoryScore:
    """Compute the heuristic relevance components for a single story."""
    skills, matched = skill_overlap(story, requirements)
    keywords = keyword_overlap(story, requirements)
    evidence = evidence_strength(story, config)
    heuristic = (
        config.skill_weight * skills
        + config.keyword_weight * keywords
        + config.evidence_weight * evidence
    )
    return StoryScore(
        skill_overlap=skills,
        keyword_overlap=keywords,
        evidence_strength=evidence,
        heuristic_score=min(max(heuristic, 0.0), 1.0),
        matched_skills=matched,
    )
