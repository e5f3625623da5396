"""Tests for the constraint validator."""

from __future__ import annotations

from resume_fit.models.validation import (
    RenderDiagnostic,
    RenderedDocument,
    ValidationConstraints,
    ViolationType,
)
from resume_fit.validation.validator import find_phrases, validate

CONSTRAINTS = ValidationConstraints(
    max_pages=1, max_chars_per_line=40, lines_per_page=55, forbidden_phrases=["synergy", "team player"]
)


class TestValidate:
    def test_clean_document(self):
        doc = RenderedDocument(text="Jane Doe\n- Built Go services")
        assert validate(doc, CONSTRAINTS) == []

    def test_two_long_lines_and_a_phrase(self):
        doc = RenderedDocument(
            text="\n".join(
                [
                    "Jane Doe",
                    "- " + "a" * 45,
                    "- Leveraged Synergy to ship faster",
                    "- " + "b" * 50,
                ]
            ),
            line_map={2: "b1", 3: "b2", 4: "b3"},
        )
        violations = validate(doc, CONSTRAINTS)

        assert len(violations) == 3
        assert [v.type for v in violations] == [
            ViolationType.LINE_LENGTH,
            ViolationType.LINE_LENGTH,
            ViolationType.FORBIDDEN_PHRASE,
        ]
        assert [v.bullet_id for v in violations] == ["b1", "b3", "b2"]
        assert violations[0].measured == 47
        assert violations[0].limit == 40
        assert violations[2].phrase == "synergy"
        assert violations[2].line_number == 3

    def test_page_count_reported_first(self):
        doc = RenderedDocument(
            text="x" * 41,
            page_count=2,
            diagnostics=[RenderDiagnostic(message="undefined control sequence", line_number=1)],
            line_map={1: "b1"},
        )
        violations = validate(doc, CONSTRAINTS)
        assert [v.type for v in violations] == [
            ViolationType.PAGE_COUNT,
            ViolationType.LINE_LENGTH,
            ViolationType.COMPILATION_ERROR,
        ]
        assert violations[0].measured == 2
        assert violations[2].bullet_id == "b1"

    def test_trailing_whitespace_not_counted(self):
        doc = RenderedDocument(text="y" * 40 + "     ")
        assert validate(doc, CONSTRAINTS) == []

    def test_unlocated_diagnostic(self):
        doc = RenderedDocument(text="ok", diagnostics=[RenderDiagnostic(message="missing font")])
        violations = validate(doc, CONSTRAINTS)
        assert violations[0].type == ViolationType.COMPILATION_ERROR
        assert violations[0].bullet_id is None
        assert "missing font" in violations[0].message

    def test_does_not_mutate_document(self):
        doc = RenderedDocument(text="- team player\n" + "z" * 60, page_count=3)
        before = doc.model_dump()
        validate(doc, CONSTRAINTS)
        assert doc.model_dump() == before


class TestFindPhrases:
    def test_case_insensitive_in_configured_order(self):
        assert find_phrases("A TEAM PLAYER with synergy", ["synergy", "team player"]) == [
            "synergy",
            "team player",
        ]

    def test_blank_phrases_ignored(self):
        assert find_phrases("anything", ["", "  "]) == []
