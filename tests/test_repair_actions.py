"""Tests for repair batch planning and local text edits."""

from __future__ import annotations

import pytest

from conftest import make_bullet
from resume_fit.models.experience import Story
from resume_fit.models.plan import Coverage, ResumePlan, SelectedStory, SpaceBudget
from resume_fit.models.ranking import RankedStory
from resume_fit.models.repair import RepairAction, RepairActionType
from resume_fit.models.validation import RenderedDocument, ValidationConstraints, Violation, ViolationType
from resume_fit.repair.actions import (
    coalesce,
    drop_order,
    plan_batch,
    protected_bullets,
    remove_bullet,
    remove_phrases,
    strip_control_chars,
    truncate_text,
)
from resume_fit.selection.materializer import materialize
from resume_fit.selection.planner import select

CONSTRAINTS = ValidationConstraints(max_pages=1, max_chars_per_line=80, lines_per_page=55)


@pytest.fixture
def plan(ranked, requirements, items):
    return select(ranked, requirements, items, SpaceBudget(max_bullets=12, max_lines=40))


@pytest.fixture
def texts(plan, items):
    return {b.id: b.text for b in materialize(plan, items)}


def _overflow_doc(plan, total_lines):
    line_map = {i + 1: bid for i, bid in enumerate(plan.bullet_ids())}
    return RenderedDocument(text="\n".join(["line"] * total_lines), page_count=2, line_map=line_map)


def _page_violation():
    return Violation(type=ViolationType.PAGE_COUNT, message="2 pages", measured=2, limit=1)


class TestLocalEdits:
    def test_remove_phrase_case_insensitive(self):
        assert remove_phrases("Responsible for building APIs", ["responsible for"]) == "building APIs"

    def test_remove_phrase_tidies_spacing_and_punctuation(self):
        assert (
            remove_phrases("Led the team, leveraging synergy, to ship", ["leveraging synergy"])
            == "Led the team, to ship"
        )

    def test_remove_phrase_can_empty_text(self):
        assert remove_phrases("Synergy", ["synergy"]) == ""

    def test_truncate_keeps_short_text(self):
        assert truncate_text("short text", 50) == "short text"

    def test_truncate_backs_up_to_word_boundary(self):
        assert truncate_text("Built Go services for payments", 12) == "Built Go"

    def test_truncate_at_exact_word_end(self):
        assert truncate_text("Built Go services", 8) == "Built Go"

    def test_truncate_strips_trailing_punctuation(self):
        assert truncate_text("Built APIs, queues and caches", 11) == "Built APIs"

    def test_truncate_non_positive_target(self):
        assert truncate_text("anything", 0) == ""

    def test_strip_control_chars(self):
        assert strip_control_chars("Built\tGo\x07 services\n") == "Built Go services"


class TestProtection:
    def test_sole_representative_is_protected(self, plan, items):
        # Kubernetes is only covered by acme-3; Go and SQL are also covered by beta-1.
        assert plan.bullet_ids() == ["acme-1", "acme-2", "acme-3", "beta-1"]
        assert protected_bullets(plan, items) == {"acme-3"}

    def test_drop_order_lowest_rank_first(self, plan, ranked):
        assert drop_order(plan, ranked) == ["beta-1", "acme-3", "acme-2", "acme-1"]


class TestPageOverflow:
    def test_drops_lowest_ranked_unprotected(self, plan, ranked, items, texts):
        batch = plan_batch(
            [_page_violation()], _overflow_doc(plan, 56), plan, ranked, items, texts, CONSTRAINTS
        )
        # beta-1 is beta's only bullet, so the whole story goes.
        assert [(a.type, a.story_id) for a in batch] == [(RepairActionType.DROP_STORY, "beta")]

    def test_drops_enough_lines_and_skips_protected(self, plan, ranked, items, texts):
        batch = plan_batch(
            [_page_violation()], _overflow_doc(plan, 57), plan, ranked, items, texts, CONSTRAINTS
        )
        # Once beta-1 goes, acme-1 and acme-2 are the last Go and SQL holders.
        assert [(a.type, a.story_id) for a in batch] == [(RepairActionType.DROP_STORY, "beta")]

    def test_never_drops_every_holder_of_a_skill(self):
        stories = [
            Story(id=f"s{i}", company="Co", role="Eng", bullets=[make_bullet(f"b{i}", f"Did thing {i}", [skill])])
            for i, skill in enumerate(["SQL", "Go", "Go"], start=1)
        ]
        items = {story.id: story for story in stories}
        plan = ResumePlan(
            space_budget=SpaceBudget(max_bullets=3, max_lines=3),
            selected_stories=[
                SelectedStory(story_id=s.id, bullet_ids=[s.bullets[0].id], estimated_lines=1) for s in stories
            ],
            coverage=Coverage(top_skills_covered=["SQL", "Go"]),
        )
        ranked = [RankedStory(story_id=s.id, relevance_score=1.0, heuristic_score=1.0) for s in stories]
        texts = {s.bullets[0].id: s.bullets[0].text for s in stories}

        batch = plan_batch(
            [_page_violation()], _overflow_doc(plan, 57), plan, ranked, items, texts, CONSTRAINTS
        )
        assert [(a.type, a.story_id) for a in batch] == [(RepairActionType.DROP_STORY, "s3")]

    def test_narrows_budget_when_all_protected(self, ranked, requirements, items):
        plan = select(ranked, requirements, items, SpaceBudget(max_bullets=3, max_lines=40))
        assert plan.bullet_ids() == ["acme-1", "acme-2", "acme-3"]
        texts = {b.id: b.text for b in materialize(plan, items)}

        batch = plan_batch(
            [_page_violation()], _overflow_doc(plan, 56), plan, ranked, items, texts, CONSTRAINTS
        )
        assert len(batch) == 1
        assert batch[0].type == RepairActionType.NARROW_BUDGET
        assert batch[0].max_lines == 2

    def test_drops_protected_as_last_resort(self, ranked, requirements, items):
        plan = select(ranked, requirements, items, SpaceBudget(max_bullets=1, max_lines=40))
        texts = {b.id: b.text for b in materialize(plan, items)}

        batch = plan_batch(
            [_page_violation()], _overflow_doc(plan, 56), plan, ranked, items, texts, CONSTRAINTS
        )
        assert [a.type for a in batch] == [RepairActionType.DROP_STORY]
        assert "last resort" in batch[0].reason


class TestBulletViolations:
    def test_long_line_shortens_by_overflow(self, plan, ranked, items, texts):
        violation = Violation(
            type=ViolationType.LINE_LENGTH, message="long", bullet_id="acme-1", measured=95, limit=80
        )
        batch = plan_batch([violation], RenderedDocument(text=""), plan, ranked, items, texts, CONSTRAINTS)
        assert batch[0].type == RepairActionType.SHORTEN_BULLET
        assert batch[0].target_chars == len(texts["acme-1"]) - 15

    def test_forbidden_phrase_rephrases(self, plan, ranked, items, texts):
        violation = Violation(
            type=ViolationType.FORBIDDEN_PHRASE, message="phrase", bullet_id="acme-2", phrase="Tuned"
        )
        batch = plan_batch([violation], RenderedDocument(text=""), plan, ranked, items, texts, CONSTRAINTS)
        assert batch[0].type == RepairActionType.REPHRASE_BULLET
        assert batch[0].phrases == ["Tuned"]

    def test_compilation_error_drops_source_text(self, plan, ranked, items, texts):
        violation = Violation(type=ViolationType.COMPILATION_ERROR, message="bad", bullet_id="acme-1")
        batch = plan_batch([violation], RenderedDocument(text=""), plan, ranked, items, texts, CONSTRAINTS)
        assert (batch[0].type, batch[0].bullet_id) == (RepairActionType.DROP_BULLET, "acme-1")

    def test_compilation_error_reverts_rewritten_text(self, plan, ranked, items, texts):
        texts = {**texts, "acme-1": "Built Go services \\x"}
        violation = Violation(type=ViolationType.COMPILATION_ERROR, message="bad", bullet_id="acme-1")
        batch = plan_batch([violation], RenderedDocument(text=""), plan, ranked, items, texts, CONSTRAINTS)
        assert batch[0].type == RepairActionType.REVERT_BULLET

    def test_compilation_error_edits_sole_holder_in_place(self, plan, ranked, items, texts):
        violation = Violation(type=ViolationType.COMPILATION_ERROR, message="bad", bullet_id="acme-3")
        batch = plan_batch([violation], RenderedDocument(text=""), plan, ranked, items, texts, CONSTRAINTS)
        assert (batch[0].type, batch[0].bullet_id) == (RepairActionType.REPHRASE_BULLET, "acme-3")

    def test_compilation_errors_keep_last_holder(self, plan, ranked, items, texts):
        violations = [
            Violation(type=ViolationType.COMPILATION_ERROR, message="bad", bullet_id=bullet_id)
            for bullet_id in ("beta-1", "acme-1")
        ]
        batch = plan_batch(violations, RenderedDocument(text=""), plan, ranked, items, texts, CONSTRAINTS)
        kinds = {a.bullet_id or a.story_id: a.type for a in batch}
        assert kinds == {"beta": RepairActionType.DROP_STORY, "acme-1": RepairActionType.REPHRASE_BULLET}

    def test_unlocated_violation_yields_no_action(self, plan, ranked, items, texts):
        violation = Violation(type=ViolationType.LINE_LENGTH, message="heading", measured=90, limit=80)
        assert plan_batch([violation], RenderedDocument(text=""), plan, ranked, items, texts, CONSTRAINTS) == []


class TestCoalesce:
    def test_drop_beats_shorten(self, plan):
        actions = [
            RepairAction(type=RepairActionType.SHORTEN_BULLET, reason="a", bullet_id="acme-1", target_chars=50),
            RepairAction(type=RepairActionType.DROP_BULLET, reason="b", bullet_id="acme-1"),
        ]
        assert [a.type for a in coalesce(actions, plan)] == [RepairActionType.DROP_BULLET]

    def test_shorten_and_rephrase_merge(self, plan):
        actions = [
            RepairAction(type=RepairActionType.SHORTEN_BULLET, reason="a", bullet_id="acme-1", target_chars=60),
            RepairAction(type=RepairActionType.SHORTEN_BULLET, reason="a", bullet_id="acme-1", target_chars=50),
            RepairAction(type=RepairActionType.REPHRASE_BULLET, reason="b", bullet_id="acme-1", phrases=["x"]),
        ]
        merged = coalesce(actions, plan)
        assert len(merged) == 1
        assert merged[0].type == RepairActionType.SHORTEN_BULLET
        assert merged[0].target_chars == 50
        assert merged[0].phrases == ["x"]

    def test_narrowing_deferred_while_bullet_actions_pending(self, plan):
        actions = [
            RepairAction(type=RepairActionType.NARROW_BUDGET, reason="page", max_lines=3),
            RepairAction(type=RepairActionType.SHORTEN_BULLET, reason="a", bullet_id="acme-1", target_chars=60),
        ]
        assert [a.type for a in coalesce(actions, plan)] == [RepairActionType.SHORTEN_BULLET]


class TestPlanEdits:
    def test_remove_last_bullet_removes_story(self, plan):
        remove_bullet(plan, "beta-1")
        assert [s.story_id for s in plan.selected_stories] == ["acme"]
