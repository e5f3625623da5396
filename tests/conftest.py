"""Shared test fixtures."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from resume_fit.clients.llm_client import LLMClient, LLMResponse
from resume_fit.models.experience import Bullet, Story
from resume_fit.models.job import JobRequirements, Requirement
from resume_fit.scoring.ranker import rank


def make_bullet(bullet_id: str, text: str, skills=(), tier: str = "medium") -> Bullet:
    return Bullet(
        id=bullet_id,
        text=text,
        skills=list(skills),
        evidence_strength=tier,
        length_chars=len(text),
    )


@pytest.fixture
def requirements() -> JobRequirements:
    return JobRequirements(
        skills=[
            Requirement(skill="Go", weight=1.0),
            Requirement(skill="SQL", weight=1.0),
            Requirement(skill="Kubernetes", weight=0.5, source="nice_to_have"),
        ],
        keywords=["latency"],
        role_title="Backend Engineer",
        company="Acme",
    )


@pytest.fixture
def stories() -> list[Story]:
    return [
        Story(
            id="acme",
            company="Acme Corp",
            role="Senior Engineer",
            start_date="2021-01",
            bullets=[
                make_bullet(
                    "acme-1",
                    "Built Go services handling 2M requests per day with p99 latency under 40ms",
                    ["Go"],
                    "high",
                ),
                make_bullet(
                    "acme-2",
                    "Tuned SQL queries and indexes, cutting report generation time by 60%",
                    ["SQL"],
                ),
                make_bullet(
                    "acme-3",
                    "Migrated deployments to Kubernetes across three regions",
                    ["Kubernetes"],
                ),
            ],
        ),
        Story(
            id="beta",
            company="Beta Labs",
            role="Engineer",
            start_date="2018-06",
            end_date="2020-12",
            bullets=[
                make_bullet("beta-1", "Wrote Go and SQL data pipelines for billing reconciliation", ["Go", "SQL"]),
                make_bullet("beta-2", "Mentored two junior engineers through code review", [], "low"),
            ],
        ),
        Story(
            id="gamma",
            company="Gamma Inc",
            role="Intern",
            section="projects",
            bullets=[
                make_bullet("gamma-1", "Prototyped a Python dashboard for internal metrics", ["Python"], "low"),
            ],
        ),
    ]


@pytest.fixture
def items(stories) -> dict[str, Story]:
    return {story.id: story for story in stories}


@pytest.fixture
def ranked(requirements, stories):
    return rank(requirements, stories)


@pytest.fixture
def mock_llm_client() -> LLMClient:
    """Create a mock LLM client."""
    client = AsyncMock(spec=LLMClient)
    client.generate = AsyncMock(
        return_value=LLMResponse(text="{}", input_tokens=100, output_tokens=50)
    )
    client.generate_json = AsyncMock(return_value={})
    client.get_token_summary = lambda: {"input": 0, "output": 0, "calls": []}
    return client
