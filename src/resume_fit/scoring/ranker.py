"""Story ranking: heuristic scores optionally blended with a judgment service."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from resume_fit.config import ScoringConfig
from resume_fit.errors import ExternalServiceError
from resume_fit.models.experience import Story
from resume_fit.models.job import JobRequirements
from resume_fit.models.ranking import Judgment, RankedStory, StoryScore
from resume_fit.scoring.scorer import DEFAULT_SCORING, score

logger = logging.getLogger(__name__)


class JudgmentService(Protocol):
    async def judge(self, story: Story, requirements: JobRequirements) -> Judgment: ...


def describe(components: StoryScore) -> str:
    """Human-readable summary of why a story scored the way it did."""
    parts = []
    matched = ", ".join(components.matched_skills)
    if not matched:
        parts.append("No skill matches")
    elif components.skill_overlap >= 0.7:
        parts.append(f"Strong skill match ({matched})")
    elif components.skill_overlap >= 0.4:
        parts.append(f"Moderate skill match ({matched})")
    else:
        parts.append(f"Weak skill match ({matched})")

    if components.evidence_strength >= 0.8:
        parts.append("High evidence strength")
    elif components.evidence_strength >= 0.5:
        parts.append("Medium evidence strength")
    else:
        parts.append("Low evidence strength")

    if components.keyword_overlap >= 0.5:
        parts.append("Good keyword overlap")
    elif components.keyword_overlap > 0:
        parts.append("Some keyword overlap")
    return ". ".join(parts)


def rank(
    requirements: JobRequirements,
    stories: list[Story],
    judgments: dict[str, Judgment | None] | None = None,
    config: ScoringConfig = DEFAULT_SCORING,
) -> list[RankedStory]:
    """Rank stories by blended score, descending; ties break by story id.

    A story without a judgment (missing key or None) is ranked on its
    heuristic score alone.
    """
    judgments = judgments or {}
    ranked = []
    for story in stories:
        components = score(story, requirements, config)
        judgment = judgments.get(story.id)
        if judgment is not None:
            final = (
                (1 - config.judgment_weight) * components.heuristic_score
                + config.judgment_weight * judgment.score
            )
        else:
            final = components.heuristic_score
        ranked.append(
            RankedStory(
                story_id=story.id,
                relevance_score=min(max(final, 0.0), 1.0),
                heuristic_score=components.heuristic_score,
                judgment_score=judgment.score if judgment is not None else None,
                skill_overlap=components.skill_overlap,
                keyword_overlap=components.keyword_overlap,
                evidence_strength=components.evidence_strength,
                matched_skills=components.matched_skills,
                notes=describe(components),
                judgment_rationale=judgment.rationale if judgment is not None else "",
            )
        )
    ranked.sort(key=lambda r: (-r.relevance_score, r.story_id))
    return ranked


class StoryRanker:
    """Ranks stories, consulting an optional judgment service for each one."""

    def __init__(
        self,
        judge: JudgmentService | None = None,
        config: ScoringConfig = DEFAULT_SCORING,
    ):
        self.judge = judge
        self.config = config

    async def rank(self, requirements: JobRequirements, stories: list[Story]) -> list[RankedStory]:
        judgments = await self.collect_judgments(requirements, stories)
        ranked = rank(requirements, stories, judgments, self.config)
        judged = sum(1 for r in ranked if r.judgment_score is not None)
        logger.info("Ranked %d stories (%d with judgment scores)", len(ranked), judged)
        return ranked

    async def collect_judgments(
        self,
        requirements: JobRequirements,
        stories: list[Story],
    ) -> dict[str, Judgment | None]:
        """Judge every story concurrently.

        A judgment that fails with ExternalServiceError maps to None; any
        other error propagates.
        """
        if self.judge is None or not stories:
            return {}

        results = await asyncio.gather(
            *(self.judge.judge(story, requirements) for story in stories),
            return_exceptions=True,
        )
        judgments: dict[str, Judgment | None] = {}
        for story, result in zip(stories, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, ExternalServiceError):
                logger.warning(
                    "Judgment failed for story %s, using heuristic score: %s", story.id, result
                )
                judgments[story.id] = None
            elif isinstance(result, BaseException):
                raise result
            else:
                judgments[story.id] = result
        return judgments
