"""LLM-backed rewrite service: shortens or rephrases a single bullet.

Every rewrite gets a light style check: it should open with a strong action
verb, keep the numbers of a quantified original, and land within 20% under
its target length. A rewrite that fails a check is retried once with the
failures spelled out; the attempt with fewer failures is kept.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from resume_fit.clients.llm_client import DEFAULT_MODEL, LLMClient
from resume_fit.errors import ExternalServiceError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You edit resume bullet points. Keep every fact, number and technology from the
original; never invent new claims. Start with a strong action verb.
Return ONLY the rewritten bullet text: no quotes, no markdown, no explanation."""

STRONG_VERBS = frozenset(
    {
        "achieved", "architected", "built", "created", "delivered", "designed",
        "developed", "engineered", "implemented", "improved", "increased", "launched",
        "led", "optimized", "reduced", "scaled", "shipped", "transformed",
    }
)
LENGTH_TOLERANCE = 0.2

_DIGIT = re.compile(r"\d")


@dataclass(frozen=True)
class StyleChecks:
    strong_verb: bool
    quantified: bool
    target_length: bool

    @property
    def failures(self) -> list[str]:
        problems = []
        if not self.strong_verb:
            problems.append("start with a strong past-tense action verb")
        if not self.quantified:
            problems.append("keep the numbers and percentages from the original")
        if not self.target_length:
            problems.append("use most of the character allowance without exceeding it")
        return problems


def is_quantified(text: str) -> bool:
    return bool(_DIGIT.search(text)) or "%" in text


def starts_with_strong_verb(text: str) -> bool:
    words = text.lower().split()
    if not words:
        return False
    first = words[0].rstrip(".,!?;:")
    return first in STRONG_VERBS or (first.endswith("ed") and len(first) > 3)


def check_style(rewritten: str, original: str, target_chars: int) -> StyleChecks:
    """Style checks for a rewrite; quantification only counts when the original had it."""
    floor = min(target_chars, len(original)) * (1 - LENGTH_TOLERANCE)
    return StyleChecks(
        strong_verb=starts_with_strong_verb(rewritten),
        quantified=is_quantified(rewritten) or not is_quantified(original),
        target_length=floor <= len(rewritten) <= target_chars,
    )


def _clean(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = [line for line in text.split("\n") if not line.strip().startswith("```")]
        text = "\n".join(lines).strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1].strip()
    text = text.lstrip("-•* ").strip()
    return " ".join(text.split())


class BulletRewriter:
    """Rewrite service for the repair loop."""

    def __init__(self, llm: LLMClient, model: str = DEFAULT_MODEL):
        self.llm = llm
        self.model = model

    async def rewrite(self, text: str, target_chars: int, avoid_phrases: list[str] | None = None) -> str:
        """Return the bullet rewritten to at most ``target_chars`` characters.

        Raises:
            ExternalServiceError: if the model call fails or returns nothing usable.
        """
        rules = [f"- At most {target_chars} characters (the original has {len(text)})"]
        if avoid_phrases:
            rules.append(f"- Do not use these phrases: {', '.join(avoid_phrases)}")
        prompt = f"""Rewrite this resume bullet.

Original:
{text}

Rules:
{chr(10).join(rules)}"""

        rewritten = await self._generate(prompt)
        if not rewritten:
            raise ExternalServiceError("rewrite", "empty rewrite returned")
        checks = check_style(rewritten, text, target_chars)

        if checks.failures:
            feedback = "\n".join(f"- {problem}" for problem in checks.failures)
            retry_prompt = f"{prompt}\n\nYour previous attempt:\n{rewritten}\n\nFix these problems:\n{feedback}"
            try:
                retried = await self._generate(retry_prompt)
            except ExternalServiceError as exc:
                logger.warning("Style retry failed, keeping first rewrite: %s", exc)
                retried = ""
            if retried:
                retried_checks = check_style(retried, text, target_chars)
                if len(retried_checks.failures) < len(checks.failures):
                    rewritten, checks = retried, retried_checks
            if checks.failures:
                logger.warning("Rewrite of %r misses style checks: %s", text[:40], "; ".join(checks.failures))

        logger.debug("Rewrote bullet: %d -> %d chars (target %d)", len(text), len(rewritten), target_chars)
        return rewritten

    async def _generate(self, prompt: str) -> str:
        response = await self.llm.generate(
            prompt=prompt,
            system=SYSTEM_PROMPT,
            model=self.model,
            temperature=0.1,
            max_tokens=512,
        )
        return _clean(response.text)
