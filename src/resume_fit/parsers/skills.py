"""Canonical skill names shared by the experience and job loaders."""

from __future__ import annotations

from collections.abc import Iterable

SKILL_ALIASES = {
    "golang": "Go",
    "go lang": "Go",
    "javascript": "JavaScript",
    "js": "JavaScript",
    "typescript": "TypeScript",
    "ts": "TypeScript",
    "k8s": "Kubernetes",
    "kubernetes": "Kubernetes",
    "react.js": "React",
    "reactjs": "React",
    "vue.js": "Vue",
    "vuejs": "Vue",
    "node.js": "Node.js",
    "nodejs": "Node.js",
    "postgres": "PostgreSQL",
    "postgresql": "PostgreSQL",
    "sql": "SQL",
    "aws": "AWS",
    "gcp": "GCP",
}

# All-caps words up to this length are kept as acronyms (SQL, AWS, REST).
_ACRONYM_MAX = 4


def normalize_skill_name(name: str) -> str:
    """Map a skill name to its canonical spelling; returns "" for blank input.

    Known aliases win. Otherwise single words are capitalized ("python" ->
    "Python", "PYTHON" -> "Python"), short all-caps words are treated as
    acronyms, and mixed-case or multi-word names are kept as written.
    """
    normalized = " ".join((name or "").split())
    if not normalized:
        return ""
    lower = normalized.lower()
    if lower in SKILL_ALIASES:
        return SKILL_ALIASES[lower]
    if " " in normalized:
        return normalized
    if normalized.isupper():
        if len(normalized) <= _ACRONYM_MAX:
            return normalized
        return normalized[0] + normalized[1:].lower()
    if normalized.islower():
        return normalized[0].upper() + normalized[1:]
    return normalized


def normalize_skills(names: Iterable[str]) -> list[str]:
    """Normalize and de-duplicate, keeping first-seen order and dropping blanks."""
    seen: dict[str, None] = {}
    for name in names:
        skill = normalize_skill_name(name)
        if skill:
            seen.setdefault(skill, None)
    return list(seen)
