"""Resolve plan references back into concrete bullet content."""

from __future__ import annotations

from collections.abc import Mapping

from resume_fit.errors import NotFoundError
from resume_fit.models.experience import Story
from resume_fit.models.plan import ResumePlan, SelectedBullet


def materialize(plan: ResumePlan, items_by_story: Mapping[str, Story]) -> list[SelectedBullet]:
    """Look up every bullet the plan references, preserving plan order.

    Raises:
        NotFoundError: if a referenced story or bullet is absent.
    """
    result = []
    for selected in plan.selected_stories:
        story = items_by_story.get(selected.story_id)
        if story is None:
            raise NotFoundError(
                f"story not found in experience items (story_id: {selected.story_id})",
                story_id=selected.story_id,
            )
        bullets = {bullet.id: bullet for bullet in story.bullets}
        for bullet_id in selected.bullet_ids:
            bullet = bullets.get(bullet_id)
            if bullet is None:
                raise NotFoundError(
                    f"bullet not found in story (story_id: {story.id}, bullet_id: {bullet_id})",
                    story_id=story.id,
                    bullet_id=bullet_id,
                )
            result.append(
                SelectedBullet(
                    id=bullet.id,
                    story_id=story.id,
                    text=bullet.text,
                    skills=list(bullet.skills),
                    metrics=bullet.metrics,
                    length_chars=bullet.length_chars,
                )
            )
    return result
