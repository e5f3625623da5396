"""Build weighted job requirements from a structured job profile."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml

from resume_fit.models.job import JobRequirements, Requirement
from resume_fit.parsers.skills import normalize_skill_name

logger = logging.getLogger(__name__)

SOURCE_WEIGHTS = {
    "hard_requirement": 1.0,
    "nice_to_have": 0.5,
    "keyword": 0.3,
}


def _entries(values: list) -> list[tuple[str, str]]:
    """(skill, evidence) pairs from a list of strings or {skill, evidence} dicts."""
    result = []
    for value in values or []:
        if isinstance(value, dict):
            result.append((str(value.get("skill", "")), str(value.get("evidence", ""))))
        else:
            result.append((str(value), ""))
    return result


def build_requirements(profile: dict) -> JobRequirements:
    """Weight hard requirements 1.0, nice-to-haves 0.5 and keywords 0.3.

    Duplicate skills keep their highest weight. Requirements come back
    sorted by weight (descending), then name.

    Raises:
        ValueError: if the profile names no skills at all.
    """
    by_skill: dict[str, Requirement] = {}
    groups = (
        ("hard_requirement", _entries(profile.get("hard_requirements", []))),
        ("nice_to_have", _entries(profile.get("nice_to_haves", []))),
        ("keyword", _entries(profile.get("keywords", []))),
    )
    for source, entries in groups:
        weight = SOURCE_WEIGHTS[source]
        for name, evidence in entries:
            skill = normalize_skill_name(name)
            if not skill:
                continue
            existing = by_skill.get(skill)
            if existing is None or weight > existing.weight:
                by_skill[skill] = Requirement(skill=skill, weight=weight, source=source, evidence=evidence)

    if not by_skill:
        raise ValueError("no skills found in job profile")

    keywords = [k.strip() for k in profile.get("keywords", []) or [] if isinstance(k, str) and k.strip()]
    requirements = JobRequirements(
        skills=sorted(by_skill.values(), key=lambda r: (-r.weight, r.skill)),
        keywords=keywords,
        role_title=profile.get("role_title", "") or "",
        company=profile.get("company", "") or "",
    )
    logger.info(
        "Built %d weighted requirements for %s",
        len(requirements.skills),
        requirements.role_title or "job",
    )
    return requirements


def load_job_profile(path: str | Path) -> JobRequirements:
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    raw = json.loads(text) if p.suffix.lower() == ".json" else yaml.safe_load(text)
    return build_requirements(raw or {})
