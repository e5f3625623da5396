"""Render/validate/repair fixed-point loop.

The loop is an explicit state machine::

    PLANNED -> RENDERED -> VALIDATED -> RESOLVED
                              |-> REPAIRING -> RENDERED ...
                              |-> EXHAUSTED

``next_state`` holds every transition so the control flow can be tested
without any collaborator. ``RepairLoop`` drives it against a render
service and an optional rewrite service.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from resume_fit.config import RepairConfig, SelectionConfig
from resume_fit.errors import ExternalServiceError
from resume_fit.models.experience import Story
from resume_fit.models.job import JobRequirements
from resume_fit.models.plan import ResumePlan, SelectedBullet
from resume_fit.models.ranking import RankedStory
from resume_fit.models.repair import (
    TERMINAL_STATES,
    RepairAction,
    RepairActionType,
    RepairOutcome,
    RepairState,
)
from resume_fit.models.validation import RenderedDocument, ValidationConstraints, Violation
from resume_fit.repair.actions import (
    plan_batch,
    protected_bullets,
    remove_bullet,
    remove_phrases,
    remove_story,
    strip_control_chars,
    truncate_text,
)
from resume_fit.selection.materializer import materialize
from resume_fit.selection.planner import DEFAULT_SELECTION, rescore_plan, select
from resume_fit.validation.validator import find_phrases, validate

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RenderService(Protocol):
    async def render(self, plan: ResumePlan, bullets: list[SelectedBullet]) -> RenderedDocument: ...


class RewriteService(Protocol):
    async def rewrite(self, text: str, target_chars: int, avoid_phrases: list[str] | None = None) -> str: ...


_EXECUTION_ORDER = {
    RepairActionType.DROP_STORY: 0,
    RepairActionType.DROP_BULLET: 0,
    RepairActionType.REVERT_BULLET: 0,
    RepairActionType.SHORTEN_BULLET: 1,
    RepairActionType.REPHRASE_BULLET: 1,
    RepairActionType.NARROW_BUDGET: 2,
}


class RepairCancelled(Exception):
    """Raised internally when the cancellation signal fires mid-step."""


def next_state(
    state: RepairState,
    violations: list[Violation] | None = None,
    iteration: int = 0,
    max_iterations: int = 5,
) -> RepairState:
    """Pure transition function of the repair state machine.

    ``iteration`` is the number of repair batches already applied; it only
    matters when leaving VALIDATED.
    """
    if state in (RepairState.PLANNED, RepairState.REPAIRING):
        return RepairState.RENDERED
    if state == RepairState.RENDERED:
        return RepairState.VALIDATED
    if state == RepairState.VALIDATED:
        if not violations:
            return RepairState.RESOLVED
        if iteration >= max_iterations:
            return RepairState.EXHAUSTED
        return RepairState.REPAIRING
    raise ValueError(f"no transition out of terminal state {state.value}")


@dataclass
class _Snapshot:
    plan: ResumePlan
    texts: dict[str, str]
    bullets: list[SelectedBullet]
    document: RenderedDocument | None = None
    violations: list[Violation] = field(default_factory=list)
    actions: list[RepairAction] = field(default_factory=list)  # every action behind this state


class RepairLoop:
    """Iteratively render, validate and repair a plan until it satisfies the constraints."""

    def __init__(
        self,
        renderer: RenderService,
        requirements: JobRequirements,
        items_by_story: Mapping[str, Story],
        ranked_stories: list[RankedStory],
        constraints: ValidationConstraints,
        rewriter: RewriteService | None = None,
        config: RepairConfig | None = None,
        selection: SelectionConfig = DEFAULT_SELECTION,
    ):
        self.renderer = renderer
        self.rewriter = rewriter
        self.requirements = requirements
        self.items_by_story = items_by_story
        self.ranked_stories = ranked_stories
        self.constraints = constraints
        self.config = config or RepairConfig()
        self.selection = selection
        self._cancel: asyncio.Event | None = None

    async def run(
        self,
        plan: ResumePlan,
        bullets: list[SelectedBullet] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RepairOutcome:
        """Drive the plan to RESOLVED, EXHAUSTED or CANCELLED.

        ``bullets`` carries already-rewritten text; when omitted the plan is
        materialized from the source items. The caller's plan is never
        mutated: every batch is applied to a copy and committed whole.
        The returned outcome holds the snapshot with the fewest violations.

        Raises:
            NotFoundError: if the plan references missing content.
            ExternalServiceError: if rendering still fails after retries.
        """
        self._cancel = cancel_event
        if bullets is None:
            bullets = materialize(plan, self.items_by_story)
        current = _Snapshot(
            plan=plan.model_copy(deep=True),
            texts={bullet.id: bullet.text for bullet in bullets},
            bullets=list(bullets),
        )
        best: _Snapshot | None = None
        state = RepairState.PLANNED
        iterations = cycles = 0

        def finish(final: RepairState) -> RepairOutcome:
            chosen = best or current
            return RepairOutcome(
                state=final,
                plan=chosen.plan,
                bullets=chosen.bullets,
                violations=chosen.violations,
                document=chosen.document,
                iterations=iterations,
                cycles=cycles,
                actions=chosen.actions,
            )

        try:
            while True:
                state = next_state(state)
                document = await self._guard(
                    self._retrying(self.renderer.render, current.plan, current.bullets)
                )
                cycles += 1

                state = next_state(state)
                violations = validate(document, self.constraints)
                current.document, current.violations = document, violations
                if best is None or len(violations) <= len(best.violations):
                    best = current
                logger.info(
                    "Repair cycle %d: %d violations (%d batches applied)",
                    cycles,
                    len(violations),
                    iterations,
                )

                state = next_state(state, violations, iterations, self.config.max_iterations)
                if state in TERMINAL_STATES:
                    return finish(state)

                batch = plan_batch(
                    violations,
                    document,
                    current.plan,
                    self.ranked_stories,
                    self.items_by_story,
                    current.texts,
                    self.constraints,
                    self.selection,
                )
                if not batch:
                    logger.warning("No repair action applies to the remaining violations")
                    return finish(RepairState.EXHAUSTED)

                current = await self._apply(current, batch)
                iterations += 1
        except RepairCancelled:
            logger.info("Repair loop cancelled after %d cycles", cycles)
            return finish(RepairState.CANCELLED)

    async def _guard(self, awaitable: Awaitable[T]) -> T:
        """Await an external step, aborting it if the cancellation signal fires."""
        if self._cancel is None:
            return await awaitable
        if self._cancel.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise RepairCancelled()

        step = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._cancel.wait())
        try:
            await asyncio.wait({step, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            step.cancel()
            raise
        finally:
            waiter.cancel()
        if step.done():
            return step.result()
        step.cancel()
        await asyncio.gather(step, return_exceptions=True)
        raise RepairCancelled()

    async def _retrying(self, func, *args, **kwargs):
        """Call an external step, retrying ExternalServiceError with backoff."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.step_attempts),
            wait=wait_exponential(
                multiplier=1, min=self.config.retry_min_wait, max=self.config.retry_max_wait
            ),
            retry=retry_if_exception_type(ExternalServiceError),
            reraise=True,
        ):
            with attempt:
                result = await func(*args, **kwargs)
        return result

    async def _rewrite(self, text: str, target_chars: int, phrases: list[str]) -> str | None:
        """Ask the rewrite service for new text; None when it fails or misses the brief."""
        if self.rewriter is None:
            return None
        try:
            new_text = await self._guard(
                self._retrying(self.rewriter.rewrite, text, target_chars, phrases)
            )
        except ExternalServiceError as exc:
            logger.warning("Rewrite failed after %d attempts: %s", self.config.step_attempts, exc)
            return None
        new_text = strip_control_chars(new_text or "")
        if not new_text or find_phrases(new_text, phrases):
            logger.warning("Rewrite result rejected for %r", text[:40])
            return None
        if len(new_text) >= len(text) and len(text) > target_chars:
            logger.warning("Rewrite did not shorten %r", text[:40])
            return None
        return new_text

    async def _apply(self, snapshot: _Snapshot, batch: list[RepairAction]) -> _Snapshot:
        """Apply a batch to a copy of the snapshot; drops run before text edits."""
        plan = snapshot.plan.model_copy(deep=True)
        texts = dict(snapshot.texts)
        executed: list[RepairAction] = []

        for action in sorted(batch, key=lambda a: _EXECUTION_ORDER[a.type]):
            bullet_id = action.bullet_id
            if action.type == RepairActionType.DROP_STORY:
                remove_story(plan, action.story_id)
            elif action.type == RepairActionType.DROP_BULLET:
                remove_bullet(plan, bullet_id)
            elif action.type == RepairActionType.REVERT_BULLET:
                texts[bullet_id] = self._source_text(plan, bullet_id)
            elif action.type == RepairActionType.NARROW_BUDGET:
                plan = self._reselect(plan, texts, action.max_lines)
            else:
                text = texts[bullet_id]
                target = action.target_chars if action.target_chars is not None else len(text)
                new_text = await self._rewrite(text, target, action.phrases)
                if new_text is not None and new_text != text:
                    texts[bullet_id] = new_text
                else:
                    fallback = self._fallback(plan, texts, action)
                    if fallback is not None:
                        executed.append(action)
                        action = fallback
            executed.append(action)

        rescore_plan(
            plan,
            self.requirements,
            self.items_by_story,
            self.ranked_stories,
            lengths={bullet_id: len(text) for bullet_id, text in texts.items()},
            config=self.selection,
        )
        kept = set(plan.bullet_ids())
        texts = {bullet_id: text for bullet_id, text in texts.items() if bullet_id in kept}
        bullets = [
            bullet.model_copy(update={"text": texts[bullet.id], "length_chars": len(texts[bullet.id])})
            for bullet in materialize(plan, self.items_by_story)
        ]
        logger.info(
            "Applied repair batch of %d actions; coverage now %.3f",
            len(batch),
            plan.coverage.coverage_score,
        )
        return _Snapshot(
            plan=plan, texts=texts, bullets=bullets, actions=[*snapshot.actions, *executed]
        )

    def _fallback(
        self,
        plan: ResumePlan,
        texts: dict[str, str],
        action: RepairAction,
    ) -> RepairAction | None:
        """Local edit used when the rewrite service cannot help; returns a DROP if it drops.

        Protection is judged on the plan as edited so far in this batch. An
        edit that leaves the text unchanged drops the bullet as a last resort.
        """
        bullet_id = action.bullet_id
        original = texts[bullet_id]
        text = remove_phrases(original, action.phrases) if action.phrases else original
        text = strip_control_chars(text)
        target = action.target_chars
        protected = protected_bullets(plan, self.items_by_story)

        if action.type == RepairActionType.SHORTEN_BULLET and bullet_id not in protected:
            remove_bullet(plan, bullet_id)
            return RepairAction(
                type=RepairActionType.DROP_BULLET,
                reason=f"shorten failed: {action.reason}",
                bullet_id=bullet_id,
            )
        if target is not None:
            text = truncate_text(text, target)
        if not text or text == original:
            if bullet_id in protected:
                logger.warning("Dropping protected bullet %s: local edit made no progress", bullet_id)
            remove_bullet(plan, bullet_id)
            return RepairAction(
                type=RepairActionType.DROP_BULLET,
                reason=f"edit left nothing usable (last resort): {action.reason}",
                bullet_id=bullet_id,
            )
        texts[bullet_id] = text
        return None

    def _source_text(self, plan: ResumePlan, bullet_id: str) -> str:
        selected = plan.story_of(bullet_id)
        bullet = self.items_by_story[selected.story_id].bullet(bullet_id) if selected else None
        if bullet is None:
            return ""
        return bullet.text

    def _reselect(self, plan: ResumePlan, texts: dict[str, str], max_lines: int) -> ResumePlan:
        """Re-run the selector over the current bullets under a tighter line cap."""
        current = {s.story_id: set(s.bullet_ids) for s in plan.selected_stories}
        stories = {}
        for story_id, bullet_ids in current.items():
            story = self.items_by_story[story_id]
            stories[story_id] = story.model_copy(
                update={
                    "bullets": [
                        b.model_copy(update={"text": texts[b.id], "length_chars": len(texts[b.id])})
                        for b in story.bullets
                        if b.id in bullet_ids
                    ]
                }
            )
        ranked = [r for r in self.ranked_stories if r.story_id in stories]
        budget = plan.space_budget.model_copy(
            update={"max_lines": min(plan.space_budget.max_lines, max_lines)}, deep=True
        )
        logger.info("Narrowing line budget to %d and reselecting", budget.max_lines)
        return select(ranked, self.requirements, stories, budget, self.selection)
