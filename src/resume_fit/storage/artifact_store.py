"""SQLite store for run artifacts (ranked stories, plan, violations)."""

from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path

from pydantic import TypeAdapter

from resume_fit.models.plan import ResumePlan
from resume_fit.models.ranking import RankedStory
from resume_fit.models.validation import Violation

DEFAULT_DB_PATH = Path.home() / ".resume-fit" / "artifacts.db"

_RANKED = TypeAdapter(list[RankedStory])
_VIOLATIONS = TypeAdapter(list[Violation])


class ArtifactStore:
    """Keeps the plain-data outputs of each run, keyed by run id and artifact kind."""

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS run_artifacts (
                    run_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    payload_json TEXT NOT NULL,
                    saved_at REAL NOT NULL,
                    PRIMARY KEY (run_id, kind)
                )
            """)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def _put(self, run_id: str, kind: str, payload: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO run_artifacts
                   (run_id, kind, payload_json, saved_at)
                   VALUES (?, ?, ?, ?)""",
                (run_id, kind, payload, time.time()),
            )

    def _get(self, run_id: str, kind: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload_json FROM run_artifacts WHERE run_id = ? AND kind = ?",
                (run_id, kind),
            ).fetchone()
        return row[0] if row else None

    def save_ranked(self, run_id: str, ranked: list[RankedStory]) -> None:
        self._put(run_id, "ranked_stories", _RANKED.dump_json(ranked).decode())

    def save_plan(self, run_id: str, plan: ResumePlan) -> None:
        self._put(run_id, "plan", plan.model_dump_json())

    def save_violations(self, run_id: str, violations: list[Violation]) -> None:
        self._put(run_id, "violations", _VIOLATIONS.dump_json(violations).decode())

    def save_summary(self, run_id: str, summary: dict) -> None:
        """Free-form run metadata (state, iterations, token usage)."""
        self._put(run_id, "summary", json.dumps(summary))

    def get_ranked(self, run_id: str) -> list[RankedStory] | None:
        payload = self._get(run_id, "ranked_stories")
        return _RANKED.validate_json(payload) if payload is not None else None

    def get_plan(self, run_id: str) -> ResumePlan | None:
        payload = self._get(run_id, "plan")
        return ResumePlan.model_validate_json(payload) if payload is not None else None

    def get_violations(self, run_id: str) -> list[Violation] | None:
        payload = self._get(run_id, "violations")
        return _VIOLATIONS.validate_json(payload) if payload is not None else None

    def get_summary(self, run_id: str) -> dict | None:
        payload = self._get(run_id, "summary")
        return json.loads(payload) if payload is not None else None

    def list_runs(self) -> list[str]:
        """Run ids, most recently saved first."""
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT run_id FROM run_artifacts
                   GROUP BY run_id ORDER BY MAX(saved_at) DESC, run_id"""
            ).fetchall()
        return [row[0] for row in rows]

    def delete_run(self, run_id: str) -> int:
        """Delete every artifact of a run. Returns count of deleted rows."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM run_artifacts WHERE run_id = ?", (run_id,))
            return cursor.rowcount
