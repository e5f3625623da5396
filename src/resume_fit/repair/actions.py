"""Repair batch planning and the local (non-LLM) edits it relies on.

A batch holds at most one action per bullet. For each violation the
cheapest corrective action is chosen in a fixed order:

- long line: shorten the bullet towards a stricter target length
- forbidden phrase: rephrase the bullet without the phrase
- compilation error: revert a rewritten bullet to its source text, edit a
  protected one in place, else drop it
- page overflow: drop the lowest-ranked unprotected bullets, then narrow the
  line budget and reselect, and only then drop a protected bullet

A bullet is protected when it is the only selected bullet covering one of
the plan's top-covered skills. Holders are tracked across the whole batch,
so two drops in one batch never remove the last holder of a skill.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from collections import Counter, defaultdict
from collections.abc import Mapping

from resume_fit.config import SelectionConfig
from resume_fit.models.experience import Story
from resume_fit.models.plan import ResumePlan
from resume_fit.models.ranking import RankedStory
from resume_fit.models.repair import RepairAction, RepairActionType
from resume_fit.models.validation import (
    RenderedDocument,
    ValidationConstraints,
    Violation,
    ViolationType,
)
from resume_fit.selection.planner import DEFAULT_SELECTION, estimate_lines

logger = logging.getLogger(__name__)

# Higher wins when two actions target the same bullet.
_PRECEDENCE = {
    RepairActionType.DROP_BULLET: 3,
    RepairActionType.REVERT_BULLET: 2,
    RepairActionType.SHORTEN_BULLET: 1,
    RepairActionType.REPHRASE_BULLET: 0,
}

_TRAILING = " ,;:-"


def remove_phrases(text: str, phrases: list[str]) -> str:
    """Delete every occurrence of the phrases (case-insensitive) and tidy spacing."""
    for phrase in phrases:
        if phrase.strip():
            text = re.sub(re.escape(phrase.strip()), "", text, flags=re.IGNORECASE)
    text = re.sub(r"\s+([,.;:])", r"\1", text)
    text = re.sub(r"([,;:])(?:\s*[,;:])+", r"\1", text)
    text = re.sub(r"\s{2,}", " ", text)
    return text.strip().strip(",;:").strip()


def truncate_text(text: str, target_chars: int) -> str:
    """Cut text to at most target_chars, backing up to a word boundary."""
    if len(text) <= target_chars:
        return text
    if target_chars <= 0:
        return ""
    cut = text[:target_chars]
    if " " in cut and not text[target_chars].isspace():
        cut = cut[: cut.rfind(" ")]
    return cut.rstrip(_TRAILING)


def strip_control_chars(text: str) -> str:
    """Replace control characters with spaces and collapse whitespace."""
    cleaned = "".join(" " if unicodedata.category(ch) == "Cc" else ch for ch in text)
    return " ".join(cleaned.split())


def skill_holders(plan: ResumePlan, items_by_story: Mapping[str, Story]) -> dict[str, set[str]]:
    """Top-covered skill -> the selected bullets tagged with it."""
    top = set(plan.coverage.top_skills_covered)
    holders: dict[str, set[str]] = defaultdict(set)
    for selected in plan.selected_stories:
        story = items_by_story[selected.story_id]
        for bullet_id in selected.bullet_ids:
            bullet = story.bullet(bullet_id)
            if bullet is None:
                continue
            for skill in set(bullet.skills) & top:
                holders[skill].add(bullet_id)
    return holders


def is_sole_holder(bullet_id: str, holders: Mapping[str, set[str]]) -> bool:
    return any(ids == {bullet_id} for ids in holders.values())


def release(bullet_id: str, holders: Mapping[str, set[str]]) -> None:
    """Forget a bullet that is about to be dropped."""
    for ids in holders.values():
        ids.discard(bullet_id)


def protected_bullets(plan: ResumePlan, items_by_story: Mapping[str, Story]) -> set[str]:
    """Bullets that are the sole representative of a top-covered skill."""
    return {
        next(iter(ids)) for ids in skill_holders(plan, items_by_story).values() if len(ids) == 1
    }


def drop_order(plan: ResumePlan, ranked_stories: list[RankedStory]) -> list[str]:
    """Plan bullets from lowest to highest ranked (later bullets of a story first)."""
    rank_index = {ranked.story_id: i for i, ranked in enumerate(ranked_stories)}
    entries = []
    for selected in plan.selected_stories:
        index = rank_index.get(selected.story_id, len(rank_index))
        for position, bullet_id in enumerate(selected.bullet_ids):
            entries.append((index, position, bullet_id))
    entries.sort(reverse=True)
    return [bullet_id for _, _, bullet_id in entries]


def _page_actions(
    violation: Violation,
    document: RenderedDocument,
    plan: ResumePlan,
    ranked_stories: list[RankedStory],
    items_by_story: Mapping[str, Story],
    texts: Mapping[str, str],
    constraints: ValidationConstraints,
    config: SelectionConfig,
    holders: dict[str, set[str]],
) -> list[RepairAction]:
    """Drops (or a budget narrowing) freeing the overflowing lines.

    ``holders`` is updated for every drop chosen. When the unprotected drops
    run out before the excess is freed, the partial batch is returned and
    the next cycle narrows the budget from the smaller plan.
    """
    capacity = constraints.max_pages * constraints.lines_per_page
    excess = max(1, len(document.lines) - capacity)
    mapped = Counter(document.line_map.values())

    def freed(bullet_id: str) -> int:
        return mapped.get(bullet_id) or estimate_lines(len(texts.get(bullet_id, "")), config.chars_per_line)

    order = drop_order(plan, ranked_stories)
    reason = f"page overflow: {violation.measured} pages, about {excess} lines over"

    actions = []
    for bullet_id in order:
        if excess <= 0:
            break
        if is_sole_holder(bullet_id, holders):
            continue
        actions.append(
            RepairAction(type=RepairActionType.DROP_BULLET, reason=reason, bullet_id=bullet_id)
        )
        release(bullet_id, holders)
        excess -= freed(bullet_id)
    if actions:
        return actions

    target = plan.total_lines - excess
    if 1 <= target < plan.total_lines:
        return [RepairAction(type=RepairActionType.NARROW_BUDGET, reason=reason, max_lines=target)]

    for bullet_id in order:
        if excess <= 0:
            break
        logger.warning("Dropping protected bullet %s: no other page repair remains", bullet_id)
        actions.append(
            RepairAction(
                type=RepairActionType.DROP_BULLET,
                reason=f"{reason} (protected, last resort)",
                bullet_id=bullet_id,
            )
        )
        release(bullet_id, holders)
        excess -= freed(bullet_id)
    return actions


def _merge(current: RepairAction | None, action: RepairAction) -> RepairAction:
    if current is None:
        return action
    if current.type == action.type or {current.type, action.type} == {
        RepairActionType.SHORTEN_BULLET,
        RepairActionType.REPHRASE_BULLET,
    }:
        targets = [t for t in (current.target_chars, action.target_chars) if t is not None]
        phrases = list(dict.fromkeys([*current.phrases, *action.phrases]))
        kind = RepairActionType.SHORTEN_BULLET if targets else current.type
        reason = current.reason if current.reason == action.reason else f"{current.reason}; {action.reason}"
        return current.model_copy(
            update={
                "type": kind,
                "target_chars": min(targets) if targets else None,
                "phrases": phrases,
                "reason": reason,
            }
        )
    return current if _PRECEDENCE[current.type] >= _PRECEDENCE[action.type] else action


def coalesce(actions: list[RepairAction], plan: ResumePlan) -> list[RepairAction]:
    """Keep one action per bullet and fold full-story drops into DROP_STORY."""
    per_bullet: dict[str, RepairAction] = {}
    others: list[RepairAction] = []
    for action in actions:
        if action.bullet_id is None:
            others.append(action)
        else:
            per_bullet[action.bullet_id] = _merge(per_bullet.get(action.bullet_id), action)

    dropped = {bid for bid, a in per_bullet.items() if a.type == RepairActionType.DROP_BULLET}
    result: list[RepairAction] = []
    for selected in plan.selected_stories:
        if selected.bullet_ids and set(selected.bullet_ids) <= dropped:
            result.append(
                RepairAction(
                    type=RepairActionType.DROP_STORY,
                    reason=per_bullet[selected.bullet_ids[0]].reason,
                    story_id=selected.story_id,
                )
            )
            for bullet_id in selected.bullet_ids:
                per_bullet.pop(bullet_id)
        for bullet_id in selected.bullet_ids:
            if bullet_id in per_bullet:
                result.append(per_bullet.pop(bullet_id))
    # Budget narrowing reselects, so it only runs when nothing else is pending.
    if not result:
        result.extend(others[:1])
    return result


def plan_batch(
    violations: list[Violation],
    document: RenderedDocument,
    plan: ResumePlan,
    ranked_stories: list[RankedStory],
    items_by_story: Mapping[str, Story],
    texts: Mapping[str, str],
    constraints: ValidationConstraints,
    config: SelectionConfig = DEFAULT_SELECTION,
) -> list[RepairAction]:
    """Choose one repair batch for the current violation set.

    Violations that cannot be traced to a selected bullet (e.g. a long
    heading) contribute nothing; an empty batch means no repair applies.
    """
    in_plan = set(plan.bullet_ids())
    holders = skill_holders(plan, items_by_story)
    actions: list[RepairAction] = []
    for violation in violations:
        bullet_id = violation.bullet_id if violation.bullet_id in in_plan else None

        if violation.type == ViolationType.PAGE_COUNT:
            actions.extend(
                _page_actions(
                    violation,
                    document,
                    plan,
                    ranked_stories,
                    items_by_story,
                    texts,
                    constraints,
                    config,
                    holders,
                )
            )
        elif bullet_id is None:
            logger.debug("No bullet to repair for violation: %s", violation.message)
        elif violation.type == ViolationType.LINE_LENGTH:
            over = (violation.measured or 0) - (violation.limit or 0)
            actions.append(
                RepairAction(
                    type=RepairActionType.SHORTEN_BULLET,
                    reason=violation.message,
                    bullet_id=bullet_id,
                    target_chars=max(1, len(texts[bullet_id]) - max(over, 1)),
                )
            )
        elif violation.type == ViolationType.FORBIDDEN_PHRASE:
            actions.append(
                RepairAction(
                    type=RepairActionType.REPHRASE_BULLET,
                    reason=violation.message,
                    bullet_id=bullet_id,
                    phrases=[violation.phrase] if violation.phrase else [],
                )
            )
        elif violation.type == ViolationType.COMPILATION_ERROR:
            story = plan.story_of(bullet_id)
            source = items_by_story[story.story_id].bullet(bullet_id) if story else None
            rewritten = source is not None and texts.get(bullet_id) != source.text
            if rewritten:
                kind = RepairActionType.REVERT_BULLET
            elif is_sole_holder(bullet_id, holders):
                # Dropped only if the in-place edit cannot change the text.
                kind = RepairActionType.REPHRASE_BULLET
            else:
                kind = RepairActionType.DROP_BULLET
                release(bullet_id, holders)
            actions.append(RepairAction(type=kind, reason=violation.message, bullet_id=bullet_id))

    batch = coalesce(actions, plan)
    logger.debug("Planned repair batch: %s", [a.type.value for a in batch])
    return batch


def remove_bullet(plan: ResumePlan, bullet_id: str) -> None:
    for selected in plan.selected_stories:
        if bullet_id in selected.bullet_ids:
            selected.bullet_ids.remove(bullet_id)
    plan.selected_stories = [s for s in plan.selected_stories if s.bullet_ids]


def remove_story(plan: ResumePlan, story_id: str) -> None:
    plan.selected_stories = [s for s in plan.selected_stories if s.story_id != story_id]
