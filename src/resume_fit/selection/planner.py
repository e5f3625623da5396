"""Budget planner: picks a coverage-maximizing subset of bullets under a space budget.

Bullets are treated as knapsack items whose weight is their estimated
printed lines and whose value is their marginal skill coverage, scaled by
the owning story's rank score. Because a skill that is already covered is
worth less the next time (diminishing returns), marginal values are
recomputed after every pick instead of being fixed up front.
"""

from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from resume_fit.config import SelectionConfig
from resume_fit.errors import NotFoundError
from resume_fit.models.experience import Bullet, Story
from resume_fit.models.job import JobRequirements
from resume_fit.models.plan import Coverage, ResumePlan, SelectedStory, SpaceBudget
from resume_fit.models.ranking import RankedStory

logger = logging.getLogger(__name__)

DEFAULT_SELECTION = SelectionConfig()


@dataclass(frozen=True)
class Candidate:
    story_id: str
    bullet: Bullet
    section: str
    rank_index: int
    story_score: float
    lines: int

    @property
    def order(self) -> tuple[int, str]:
        return (self.rank_index, self.bullet.id)


def estimate_lines(length_chars: int, chars_per_line: int = DEFAULT_SELECTION.chars_per_line) -> int:
    """Printed lines for a bullet of the given length (at least one)."""
    if length_chars <= 0:
        return 1
    return math.ceil(length_chars / chars_per_line)


def index_stories(stories: Iterable[Story]) -> dict[str, Story]:
    return {story.id: story for story in stories}


def marginal_value(
    candidate: Candidate,
    covered: Counter,
    weights: Mapping[str, float],
    total_weight: float,
    redundancy_factor: float,
) -> float:
    """Coverage a candidate would add given how often each skill is already covered."""
    if total_weight <= 0:
        return 0.0
    gain = sum(
        weights[skill] / total_weight * redundancy_factor ** covered[skill]
        for skill in set(candidate.bullet.skills)
        if skill in weights
    )
    return candidate.story_score * gain


def greedy_select(
    candidates: list[Candidate],
    max_bullets: int,
    max_lines: int,
    weights: Mapping[str, float],
    redundancy_factor: float,
) -> list[Candidate]:
    """Greedy submodular coverage under a line budget and a hard bullet cap.

    Candidates must be sorted by (story rank, bullet id); the first
    candidate with the highest marginal value wins, so ties resolve in that
    order. Picks stop when nothing that fits adds value.
    """
    total_weight = sum(weights.values())
    remaining = list(candidates)
    covered: Counter = Counter()
    picked: list[Candidate] = []
    lines_left = max_lines

    while len(picked) < max_bullets and remaining:
        best, best_value = None, 0.0
        for candidate in remaining:
            if candidate.lines > lines_left:
                continue
            value = marginal_value(candidate, covered, weights, total_weight, redundancy_factor)
            if value > best_value:
                best, best_value = candidate, value
        if best is None:
            break
        logger.debug("Picked %s (value %.4f, %d lines)", best.bullet.id, best_value, best.lines)
        picked.append(best)
        remaining.remove(best)
        covered.update(skill for skill in set(best.bullet.skills) if skill in weights)
        lines_left -= best.lines
    return picked


def coverage_objective(
    entries: Iterable[tuple[Bullet, float]],
    weights: Mapping[str, float],
    redundancy_factor: float,
) -> tuple[float, dict[str, list[float]]]:
    """Order-independent coverage value of a set of (bullet, story score) pairs.

    For each skill the covering bullets are credited in descending story
    score: the first in full, each later one at redundancy_factor**k.
    """
    total_weight = sum(weights.values())
    per_skill: dict[str, list[float]] = defaultdict(list)
    for bullet, story_score in entries:
        for skill in set(bullet.skills):
            if skill in weights:
                per_skill[skill].append(story_score)
    if total_weight <= 0:
        return 0.0, per_skill

    value = 0.0
    for skill, scores in per_skill.items():
        scores.sort(reverse=True)
        credit = sum(s * redundancy_factor**k for k, s in enumerate(scores))
        value += weights[skill] / total_weight * credit
    return value, per_skill


def compute_coverage(
    entries: Iterable[tuple[Bullet, float]],
    requirements: JobRequirements,
    config: SelectionConfig = DEFAULT_SELECTION,
) -> Coverage:
    weights = requirements.skill_weights()
    value, per_skill = coverage_objective(entries, weights, config.redundancy_factor)
    top = sorted(per_skill, key=lambda skill: (-weights[skill], skill))
    return Coverage(
        top_skills_covered=top[: config.top_skills_limit],
        coverage_score=min(1.0, value),
    )


def build_candidates(
    ranked_stories: list[RankedStory],
    items_by_story: Mapping[str, Story],
    config: SelectionConfig = DEFAULT_SELECTION,
) -> list[Candidate]:
    candidates = []
    for rank_index, ranked in enumerate(ranked_stories):
        story = items_by_story.get(ranked.story_id)
        if story is None:
            raise NotFoundError(
                f"ranked story not found in experience items (story_id: {ranked.story_id})",
                story_id=ranked.story_id,
            )
        for bullet in story.bullets:
            candidates.append(
                Candidate(
                    story_id=story.id,
                    bullet=bullet,
                    section=story.section,
                    rank_index=rank_index,
                    story_score=ranked.relevance_score,
                    lines=estimate_lines(bullet.length_chars, config.chars_per_line),
                )
            )
    candidates.sort(key=lambda c: c.order)
    return candidates


def _select_at_capacity(
    candidates: list[Candidate],
    budget: SpaceBudget,
    max_lines: int,
    weights: Mapping[str, float],
    redundancy_factor: float,
) -> list[Candidate]:
    if not budget.sections:
        return greedy_select(candidates, budget.max_bullets, max_lines, weights, redundancy_factor)

    pools: dict[str, list[Candidate]] = defaultdict(list)
    for candidate in candidates:
        pools[candidate.section].append(candidate)

    # Each section picks independently under its own caps; the merge pass
    # then re-runs the greedy over the union under the global caps, so any
    # subset it keeps still honours every section cap.
    allowed: list[Candidate] = []
    for section, pool in pools.items():
        caps = budget.sections.get(section)
        section_bullets = budget.max_bullets
        section_lines = max_lines
        if caps is not None:
            if caps.max_bullets is not None:
                section_bullets = min(section_bullets, caps.max_bullets)
            if caps.max_lines is not None:
                section_lines = min(section_lines, caps.max_lines)
        allowed.extend(greedy_select(pool, section_bullets, section_lines, weights, redundancy_factor))
    allowed.sort(key=lambda c: c.order)
    return greedy_select(allowed, budget.max_bullets, max_lines, weights, redundancy_factor)


def select(
    ranked_stories: list[RankedStory],
    requirements: JobRequirements,
    items_by_story: Mapping[str, Story],
    budget: SpaceBudget,
    config: SelectionConfig = DEFAULT_SELECTION,
) -> ResumePlan:
    """Select the bullets to typeset and group them into a resume plan.

    Raises:
        ConfigurationError: if a budget cap is not strictly positive.
        NotFoundError: if a ranked story is missing from items_by_story.
    """
    budget.check()
    weights = requirements.skill_weights()
    candidates = build_candidates(ranked_stories, items_by_story, config)
    if not weights:
        logger.warning("No weighted skills in requirements; nothing adds coverage")

    # The greedy is not monotone in capacity on its own, so keep the best
    # result over every capacity up to the budget.
    all_lines = sum(c.lines for c in candidates)
    best: list[Candidate] = []
    best_value = 0.0
    for capacity in range(1, budget.max_lines + 1):
        picks = _select_at_capacity(candidates, budget, capacity, weights, config.redundancy_factor)
        value, _ = coverage_objective(
            ((c.bullet, c.story_score) for c in picks), weights, config.redundancy_factor
        )
        if value > best_value:
            best, best_value = picks, value
        if capacity >= all_lines:
            break

    plan = _build_plan(best, budget, items_by_story, ranked_stories, config)
    plan.coverage = compute_coverage(
        ((c.bullet, c.story_score) for c in best), requirements, config
    )
    logger.info(
        "Selected %d bullets from %d stories (%d lines, coverage %.3f)",
        plan.total_bullets,
        len(plan.selected_stories),
        plan.total_lines,
        plan.coverage.coverage_score,
    )
    return plan


def _build_plan(
    picks: list[Candidate],
    budget: SpaceBudget,
    items_by_story: Mapping[str, Story],
    ranked_stories: list[RankedStory],
    config: SelectionConfig,
) -> ResumePlan:
    chosen: dict[str, set[str]] = defaultdict(set)
    for candidate in picks:
        chosen[candidate.story_id].add(candidate.bullet.id)

    selected = []
    for ranked in ranked_stories:
        bullet_ids = chosen.get(ranked.story_id)
        if not bullet_ids:
            continue
        story = items_by_story[ranked.story_id]
        ordered = [b for b in story.bullets if b.id in bullet_ids]
        selected.append(
            SelectedStory(
                story_id=story.id,
                bullet_ids=[b.id for b in ordered],
                section=story.section,
                estimated_lines=sum(estimate_lines(b.length_chars, config.chars_per_line) for b in ordered),
            )
        )
    return ResumePlan(space_budget=budget.model_copy(deep=True), selected_stories=selected)


def rescore_plan(
    plan: ResumePlan,
    requirements: JobRequirements,
    items_by_story: Mapping[str, Story],
    ranked_stories: list[RankedStory],
    lengths: Mapping[str, int] | None = None,
    config: SelectionConfig = DEFAULT_SELECTION,
) -> None:
    """Re-derive line estimates and coverage after the plan was edited in place.

    ``lengths`` overrides bullet lengths for bullets whose text was replaced.
    Stories left without bullets are removed.
    """
    lengths = lengths or {}
    scores = {r.story_id: r.relevance_score for r in ranked_stories}
    plan.selected_stories = [s for s in plan.selected_stories if s.bullet_ids]
    entries = []
    for selected in plan.selected_stories:
        story = items_by_story[selected.story_id]
        lines = 0
        for bullet_id in selected.bullet_ids:
            bullet = story.bullet(bullet_id)
            if bullet is None:
                raise NotFoundError(
                    f"bullet not found in story (story_id: {story.id}, bullet_id: {bullet_id})",
                    story_id=story.id,
                    bullet_id=bullet_id,
                )
            lines += estimate_lines(lengths.get(bullet_id, bullet.length_chars), config.chars_per_line)
            entries.append((bullet, scores.get(story.id, 0.0)))
        selected.estimated_lines = lines
    plan.coverage = compute_coverage(entries, requirements, config)
