"""End-to-end run: rank -> select -> materialize -> (rewrite) -> repair."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from resume_fit.clients.llm_client import LLMClient
from resume_fit.config import AppConfig
from resume_fit.errors import ExternalServiceError
from resume_fit.models.experience import Story
from resume_fit.models.job import JobRequirements
from resume_fit.models.plan import ResumePlan, SelectedBullet
from resume_fit.models.ranking import RankedStory
from resume_fit.models.repair import RepairOutcome
from resume_fit.pipeline.judge import RelevanceJudge
from resume_fit.pipeline.rewriter import BulletRewriter
from resume_fit.rendering.renderer import TextRenderer
from resume_fit.repair.loop import RenderService, RepairLoop, RewriteService
from resume_fit.scoring.ranker import StoryRanker
from resume_fit.selection.materializer import materialize
from resume_fit.selection.planner import index_stories, select

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Complete result from one tailoring run."""

    ranked: list[RankedStory]
    initial_plan: ResumePlan
    outcome: RepairOutcome
    elapsed_seconds: float = 0.0
    token_usage: dict = field(default_factory=dict)


class TailoringPipeline:
    """Wires the engine stages together with the configured collaborators.

    Without an LLM client the run is heuristic-only: no judgment scores and
    no rewrites, so repairs fall back to local edits and drops.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        llm: LLMClient | None = None,
        renderer: RenderService | None = None,
        *,
        candidate_name: str = "",
        contact: str = "",
    ):
        self.config = config or AppConfig()
        self.llm = llm
        self.renderer = renderer
        self.candidate_name = candidate_name
        self.contact = contact
        judge = RelevanceJudge(llm, model=self.config.llm.judge_model) if llm else None
        self.rewriter: RewriteService | None = (
            BulletRewriter(llm, model=self.config.llm.rewrite_model) if llm else None
        )
        self.ranker = StoryRanker(judge=judge, config=self.config.scoring)

    async def run(
        self,
        requirements: JobRequirements,
        stories: list[Story],
        *,
        rewrite_first: bool = False,
        cancel_event: asyncio.Event | None = None,
        on_phase: Callable[[str, str], None] | None = None,
    ) -> PipelineResult:
        start = time.monotonic()

        def _notify(phase: str, detail: str = ""):
            if on_phase:
                on_phase(phase, detail)

        items = index_stories(stories)
        _notify("rank", f"{len(stories)} stories")
        ranked = await self.ranker.rank(requirements, stories)

        _notify("select", "choosing bullets")
        plan = select(
            ranked,
            requirements,
            items,
            self.config.selection.space_budget(),
            self.config.selection,
        )
        bullets = materialize(plan, items)
        if rewrite_first and self.rewriter is not None:
            _notify("rewrite", f"{len(bullets)} bullets")
            bullets = await self._rewrite_all(bullets)

        constraints = self.config.validation.constraints()
        renderer = self.renderer or TextRenderer(
            items,
            name=self.candidate_name,
            contact=self.contact,
            lines_per_page=constraints.lines_per_page,
        )
        loop = RepairLoop(
            renderer,
            requirements,
            items,
            ranked,
            constraints,
            rewriter=self.rewriter,
            config=self.config.repair,
            selection=self.config.selection,
        )
        _notify("repair", "render/validate/repair")
        outcome = await loop.run(plan, bullets, cancel_event=cancel_event)

        elapsed = time.monotonic() - start
        _notify("done", f"{outcome.state.value} after {outcome.cycles} cycles")
        logger.info(
            "Run finished: %s, %d violations left, %.1fs",
            outcome.state.value,
            len(outcome.violations),
            elapsed,
        )
        return PipelineResult(
            ranked=ranked,
            initial_plan=plan,
            outcome=outcome,
            elapsed_seconds=elapsed,
            token_usage=self.llm.get_token_summary() if self.llm else {},
        )

    async def _rewrite_all(self, bullets: list[SelectedBullet]) -> list[SelectedBullet]:
        """Tailor every bullet once; a bullet whose rewrite fails keeps its source text."""
        phrases = list(self.config.validation.forbidden_phrases)
        results = await asyncio.gather(
            *(self.rewriter.rewrite(b.text, b.length_chars, phrases) for b in bullets),
            return_exceptions=True,
        )
        rewritten = []
        for bullet, result in zip(bullets, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, ExternalServiceError):
                logger.warning("Rewrite failed for bullet %s, keeping source text: %s", bullet.id, result)
                rewritten.append(bullet)
            elif isinstance(result, BaseException):
                raise result
            else:
                rewritten.append(bullet.model_copy(update={"text": result, "length_chars": len(result)}))
        return rewritten
