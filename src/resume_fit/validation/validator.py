"""Constraint validation of a rendered resume document."""

from __future__ import annotations

import logging

from resume_fit.models.validation import (
    RenderedDocument,
    ValidationConstraints,
    Violation,
    ViolationType,
)

logger = logging.getLogger(__name__)


def check_page_count(document: RenderedDocument, constraints: ValidationConstraints) -> list[Violation]:
    if document.page_count <= constraints.max_pages:
        return []
    return [
        Violation(
            type=ViolationType.PAGE_COUNT,
            message=(
                f"Document has {document.page_count} pages, "
                f"maximum allowed is {constraints.max_pages}"
            ),
            measured=document.page_count,
            limit=constraints.max_pages,
        )
    ]


def check_line_lengths(document: RenderedDocument, constraints: ValidationConstraints) -> list[Violation]:
    violations = []
    limit = constraints.max_chars_per_line
    for number, line in enumerate(document.lines, start=1):
        length = len(line.rstrip())
        if length > limit:
            violations.append(
                Violation(
                    type=ViolationType.LINE_LENGTH,
                    message=f"Line {number} has {length} characters, maximum is {limit}",
                    line_number=number,
                    bullet_id=document.line_map.get(number),
                    measured=length,
                    limit=limit,
                )
            )
    return violations


def find_phrases(text: str, phrases: list[str]) -> list[str]:
    """Forbidden phrases occurring in text (case-insensitive), in configured order."""
    lowered = text.lower()
    found = []
    for phrase in phrases:
        needle = phrase.strip().lower()
        if needle and needle in lowered and phrase not in found:
            found.append(phrase)
    return found


def check_forbidden_phrases(
    document: RenderedDocument, constraints: ValidationConstraints
) -> list[Violation]:
    if not constraints.forbidden_phrases:
        return []
    violations = []
    for number, line in enumerate(document.lines, start=1):
        for phrase in find_phrases(line, constraints.forbidden_phrases):
            violations.append(
                Violation(
                    type=ViolationType.FORBIDDEN_PHRASE,
                    message=f"Line {number} contains forbidden phrase: {phrase}",
                    line_number=number,
                    bullet_id=document.line_map.get(number),
                    phrase=phrase,
                )
            )
    return violations


def check_compilation(document: RenderedDocument) -> list[Violation]:
    return [
        Violation(
            type=ViolationType.COMPILATION_ERROR,
            message=f"Rendering failed: {diagnostic.message}",
            line_number=diagnostic.line_number,
            bullet_id=(
                document.line_map.get(diagnostic.line_number)
                if diagnostic.line_number is not None
                else None
            ),
        )
        for diagnostic in document.diagnostics
    ]


def validate(document: RenderedDocument, constraints: ValidationConstraints) -> list[Violation]:
    """Return every violation in the document; an empty list means it is acceptable.

    All checks always run, reported in a fixed order: page count, line
    length, forbidden phrases, then compilation diagnostics.
    """
    violations = [
        *check_page_count(document, constraints),
        *check_line_lengths(document, constraints),
        *check_forbidden_phrases(document, constraints),
        *check_compilation(document),
    ]
    if violations:
        logger.info(
            "Validation found %d violations: %s",
            len(violations),
            ", ".join(sorted({v.type.value for v in violations})),
        )
    return violations
