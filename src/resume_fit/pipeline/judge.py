"""LLM-backed judgment service: rates how relevant a story is to a job."""

from __future__ import annotations

import logging

from resume_fit.clients.llm_client import DEFAULT_MODEL, LLMClient
from resume_fit.errors import ExternalServiceError
from resume_fit.models.experience import Story
from resume_fit.models.job import JobRequirements
from resume_fit.models.ranking import Judgment

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are an experienced technical recruiter. Judge how relevant one block of a
candidate's work history is to a specific job.

Respond ONLY with JSON in this format:
{"relevance_score": 0.0-1.0, "reasoning": "one or two sentences"}

Scoring guide:
- 0.9-1.0: directly demonstrates the core requirements with strong evidence
- 0.6-0.8: demonstrates several requirements or closely related work
- 0.3-0.5: transferable experience only
- 0.0-0.2: unrelated
Judge only what the bullets state; do not assume unstated experience."""


def _or_unspecified(value: str) -> str:
    return value or "Not specified"


def build_prompt(story: Story, requirements: JobRequirements) -> str:
    skills = []
    for req in requirements.skills:
        if req.source == "nice_to_have":
            skills.append(f"{req.skill} (nice to have)")
        elif req.source != "keyword":
            skills.append(req.skill)

    bullet_lines = []
    for bullet in story.bullets:
        line = f"  - {bullet.text}"
        if bullet.skills:
            line += f" [Skills: {', '.join(bullet.skills)}]"
        bullet_lines.append(line)

    return f"""Job
- Company: {_or_unspecified(requirements.company)}
- Role: {_or_unspecified(requirements.role_title)}
- Requirements: {_or_unspecified(", ".join(skills))}
- Keywords: {_or_unspecified(", ".join(requirements.keywords))}

Candidate experience
- Company: {_or_unspecified(story.company)}
- Role: {_or_unspecified(story.role)}
- Bullets:
{chr(10).join(bullet_lines) or "  (none)"}

Respond with JSON only."""


class RelevanceJudge:
    """Judgment service for StoryRanker."""

    def __init__(self, llm: LLMClient, model: str = DEFAULT_MODEL):
        self.llm = llm
        self.model = model

    async def judge(self, story: Story, requirements: JobRequirements) -> Judgment:
        data = await self.llm.generate_json(
            prompt=build_prompt(story, requirements),
            system=SYSTEM_PROMPT,
            model=self.model,
            max_tokens=512,
        )
        raw = data.get("relevance_score")
        try:
            value = float(raw)
        except (TypeError, ValueError) as exc:
            raise ExternalServiceError("judge", f"invalid relevance_score: {raw!r}") from exc
        clamped = min(max(value, 0.0), 1.0)
        if clamped != value:
            logger.debug("Clamped relevance score %.3f for story %s", value, story.id)
        return Judgment(score=clamped, rationale=str(data.get("reasoning", "")).strip())
