"""Load an experience bank (JSON or YAML) and normalize it once."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml

from resume_fit.models.experience import Bullet, EvidenceTier, Story
from resume_fit.parsers.skills import normalize_skills

logger = logging.getLogger(__name__)

_TIERS = {tier.value for tier in EvidenceTier}


def normalize_bullet(raw: dict, story_id: str = "") -> Bullet:
    """Build a Bullet from raw data: canonical skills, lowercased tier, computed length.

    Raises:
        ValueError: if the evidence tier is not low, medium or high.
    """
    data = dict(raw)
    data["skills"] = normalize_skills(data.get("skills") or [])
    tier = str(data.get("evidence_strength") or "medium").strip().lower()
    if tier not in _TIERS:
        raise ValueError(
            f"invalid evidence_strength '{data.get('evidence_strength')}' "
            f"in story '{story_id}', bullet '{data.get('id')}'"
        )
    data["evidence_strength"] = tier
    if not data.get("length_chars"):
        data["length_chars"] = len(data.get("text", ""))
    return Bullet(**data)


def normalize_story(raw: dict) -> Story:
    data = dict(raw)
    story_id = str(data.get("id", ""))
    data["bullets"] = [normalize_bullet(b, story_id) for b in data.get("bullets") or []]
    return Story(**data)


def normalize_bank(raw: dict | list) -> list[Story]:
    """Normalize a bank given as {"stories": [...]} or a bare list of stories.

    Raises:
        ValueError: on a bad tier or a duplicated story or bullet id.
    """
    entries = raw.get("stories", []) if isinstance(raw, dict) else raw
    stories = [normalize_story(entry) for entry in entries or []]

    story_ids: set[str] = set()
    bullet_ids: set[str] = set()
    for story in stories:
        if story.id in story_ids:
            raise ValueError(f"duplicate story id '{story.id}'")
        story_ids.add(story.id)
        for bullet in story.bullets:
            if bullet.id in bullet_ids:
                raise ValueError(f"duplicate bullet id '{bullet.id}' in story '{story.id}'")
            bullet_ids.add(bullet.id)
    return stories


def load_experience_bank(path: str | Path) -> list[Story]:
    """Read and normalize an experience bank file (.json, .yaml or .yml)."""
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    raw = json.loads(text) if p.suffix.lower() == ".json" else yaml.safe_load(text)
    stories = normalize_bank(raw or [])
    logger.info(
        "Loaded %d stories (%d bullets) from %s",
        len(stories),
        sum(len(s.bullets) for s in stories),
        p.name,
    )
    return stories
