"""Tests for the SQLite artifact store."""

import itertools

import pytest

from resume_fit.models.plan import ResumePlan, SelectedStory, SpaceBudget
from resume_fit.models.validation import Violation, ViolationType
from resume_fit.storage.artifact_store import ArtifactStore


@pytest.fixture
def store(tmp_path):
    return ArtifactStore(tmp_path / "nested" / "artifacts.db")


@pytest.fixture
def plan():
    return ResumePlan(
        space_budget=SpaceBudget(max_bullets=4, max_lines=8),
        selected_stories=[SelectedStory(story_id="acme", bullet_ids=["acme-1"], estimated_lines=1)],
    )


class TestArtifactStore:
    def test_creates_parent_directory(self, tmp_path, store):
        assert (tmp_path / "nested" / "artifacts.db").exists()

    def test_plan_round_trip(self, store, plan):
        store.save_plan("run1", plan)
        assert store.get_plan("run1") == plan

    def test_ranked_round_trip(self, store, ranked):
        store.save_ranked("run1", ranked)
        assert store.get_ranked("run1") == ranked

    def test_violations_and_summary(self, store):
        violation = Violation(type=ViolationType.PAGE_COUNT, message="2 pages", measured=2, limit=1)
        store.save_violations("run1", [violation])
        store.save_summary("run1", {"state": "exhausted", "cycles": 6})
        assert store.get_violations("run1") == [violation]
        assert store.get_summary("run1") == {"state": "exhausted", "cycles": 6}

    def test_missing_artifacts(self, store):
        assert store.get_plan("nope") is None
        assert store.get_ranked("nope") is None
        assert store.get_violations("nope") is None
        assert store.get_summary("nope") is None

    def test_save_replaces_existing(self, store, plan):
        store.save_summary("run1", {"state": "cancelled"})
        store.save_summary("run1", {"state": "resolved"})
        assert store.get_summary("run1") == {"state": "resolved"}

    def test_list_runs_most_recent_first(self, store, plan, monkeypatch):
        clock = itertools.count(1000)
        monkeypatch.setattr("resume_fit.storage.artifact_store.time.time", lambda: next(clock))
        store.save_plan("older", plan)
        store.save_plan("newer", plan)
        assert store.list_runs() == ["newer", "older"]

    def test_delete_run(self, store, plan):
        store.save_plan("run1", plan)
        store.save_summary("run1", {})
        store.save_plan("run2", plan)

        assert store.delete_run("run1") == 2
        assert store.list_runs() == ["run2"]
        assert store.delete_run("run1") == 0
