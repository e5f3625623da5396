"""Plain-text one-page renderer used as the default render service."""

from __future__ import annotations

import logging
import math
import unicodedata
from collections.abc import Mapping
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, TemplateError

from resume_fit.errors import ExternalServiceError
from resume_fit.models.experience import Story
from resume_fit.models.plan import ResumePlan, SelectedBullet
from resume_fit.models.validation import RenderDiagnostic, RenderedDocument

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
BULLET_PREFIX = "- "


def _heading(story: Story) -> str:
    dates = " - ".join(d for d in (story.start_date, story.end_date or "Present") if d)
    title = ", ".join(part for part in (story.role, story.company) if part) or story.id
    return f"{title} ({dates})" if story.start_date else title


def _sanitize(text: str) -> tuple[str, bool]:
    """Replace control characters with spaces; report whether any were found."""
    bad = False
    chars = []
    for ch in text:
        if unicodedata.category(ch) == "Cc":
            bad = True
            chars.append(" ")
        else:
            chars.append(ch)
    return "".join(chars), bad


class TextRenderer:
    """Renders a plan into a plain-text resume and estimates its page count."""

    def __init__(
        self,
        items_by_story: Mapping[str, Story],
        *,
        name: str = "",
        contact: str = "",
        lines_per_page: int = 55,
        template_name: str = "resume.txt.j2",
    ):
        self.items_by_story = items_by_story
        self.name = name
        self.contact = contact
        self.lines_per_page = lines_per_page
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,
        )
        self.template_name = template_name

    async def render(self, plan: ResumePlan, bullets: list[SelectedBullet]) -> RenderedDocument:
        return self.render_sync(plan, bullets)

    def render_sync(self, plan: ResumePlan, bullets: list[SelectedBullet]) -> RenderedDocument:
        texts = {bullet.id: bullet.text for bullet in bullets}
        sections: dict[str, list[dict]] = {}
        expected: list[tuple[str, str]] = []  # (bullet id, rendered line) in output order
        problems: dict[str, str] = {}

        for selected in plan.selected_stories:
            story = self.items_by_story[selected.story_id]
            lines = []
            for bullet_id in selected.bullet_ids:
                text, bad = _sanitize(texts.get(bullet_id, ""))
                if bad:
                    problems[bullet_id] = f"unsupported control character in bullet {bullet_id}"
                elif not text.strip():
                    problems[bullet_id] = f"empty bullet {bullet_id}"
                lines.append(text)
                expected.append((bullet_id, f"{BULLET_PREFIX}{text}"))
            sections.setdefault(selected.section, []).append(
                {"heading": _heading(story), "bullets": lines}
            )

        try:
            template = self.env.get_template(self.template_name)
            text = template.render(
                name=self.name,
                contact=self.contact,
                prefix=BULLET_PREFIX,
                sections=[
                    {"title": name.replace("_", " ").upper(), "entries": entries}
                    for name, entries in sections.items()
                ],
            )
        except TemplateError as exc:
            raise ExternalServiceError("render", f"template failed: {exc}") from exc

        text = text.rstrip("\n")
        line_map: dict[int, str] = {}
        cursor = 0
        for number, line in enumerate(text.split("\n"), start=1):
            if cursor < len(expected) and line == expected[cursor][1]:
                line_map[number] = expected[cursor][0]
                cursor += 1

        by_bullet = {bullet_id: number for number, bullet_id in line_map.items()}
        diagnostics = [
            RenderDiagnostic(message=message, line_number=by_bullet.get(bullet_id))
            for bullet_id, message in problems.items()
        ]
        line_count = text.count("\n") + 1
        page_count = max(1, math.ceil(line_count / self.lines_per_page))
        logger.debug("Rendered %d lines (%d pages)", line_count, page_count)
        return RenderedDocument(
            text=text,
            page_count=page_count,
            diagnostics=diagnostics,
            line_map=line_map,
        )
