"""Pydantic models for rendered documents and constraint violations."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class ViolationType(str, Enum):
    PAGE_COUNT = "page_count"
    LINE_LENGTH = "line_length"
    FORBIDDEN_PHRASE = "forbidden_phrase"
    COMPILATION_ERROR = "compilation_error"


class Violation(BaseModel):
    type: ViolationType
    message: str
    line_number: int | None = None
    bullet_id: str | None = None
    measured: int | None = None  # pages or characters, depending on type
    limit: int | None = None
    phrase: str | None = None


class ValidationConstraints(BaseModel):
    max_pages: int = Field(default=1, ge=1)
    max_chars_per_line: int = Field(default=110, ge=1)
    lines_per_page: int = Field(default=55, ge=1)
    forbidden_phrases: list[str] = []


class RenderDiagnostic(BaseModel):
    """A typesetting problem reported by the render service."""

    message: str
    line_number: int | None = None


class RenderedDocument(BaseModel):
    text: str
    page_count: int = 1
    diagnostics: list[RenderDiagnostic] = []
    line_map: dict[int, str] = {}  # 1-based line number -> bullet id

    @property
    def lines(self) -> list[str]:
        return self.text.split("\n")
