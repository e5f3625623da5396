"""Tests for plan materialization."""

from __future__ import annotations

import pytest

from resume_fit.errors import NotFoundError
from resume_fit.models.plan import ResumePlan, SelectedStory, SpaceBudget
from resume_fit.selection.materializer import materialize
from resume_fit.selection.planner import select


def _plan(*stories):
    return ResumePlan(
        space_budget=SpaceBudget(max_bullets=10, max_lines=10),
        selected_stories=[SelectedStory(story_id=sid, bullet_ids=ids) for sid, ids in stories],
    )


class TestMaterialize:
    def test_selected_plan_round_trips(self, ranked, requirements, items):
        plan = select(ranked, requirements, items, SpaceBudget(max_bullets=12, max_lines=40))
        bullets = materialize(plan, items)
        assert [b.id for b in bullets] == plan.bullet_ids()
        first = bullets[0]
        source = items["acme"].bullet("acme-1")
        assert (first.story_id, first.text, first.skills, first.length_chars) == (
            "acme",
            source.text,
            source.skills,
            source.length_chars,
        )

    def test_preserves_plan_order(self, items):
        bullets = materialize(_plan(("beta", ["beta-2", "beta-1"]), ("acme", ["acme-3"])), items)
        assert [b.id for b in bullets] == ["beta-2", "beta-1", "acme-3"]

    def test_missing_story(self, items):
        with pytest.raises(NotFoundError) as exc:
            materialize(_plan(("nope", ["x"])), items)
        assert exc.value.story_id == "nope"
        assert exc.value.bullet_id is None

    def test_missing_bullet(self, items):
        with pytest.raises(NotFoundError, match="acme-9") as exc:
            materialize(_plan(("acme", ["acme-1", "acme-9"])), items)
        assert exc.value.story_id == "acme"
        assert exc.value.bullet_id == "acme-9"

    def test_not_found_is_lookup_error(self, items):
        with pytest.raises(LookupError):
            materialize(_plan(("nope", [])), items)
