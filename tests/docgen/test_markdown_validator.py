"""Markdown rendering and validation tests."""

from legacylens.docgen import DocOutline, DocSection, MarkdownValidator, render_document
from legacylens.pipeline import validate_and_fix


def test_render_orders_sections_by_outline():
    outline = DocOutline(overview="Two units.", unit_ids=["b", "a"])
    sections = [
        DocSection(unit_id="a", title="Alpha Unit", body="First."),
        DocSection(unit_id="b", title="beta", body="Second."),
        DocSection(unit_id="z", title="stray", body="Unplanned."),
    ]

    content = render_document("Guide", outline, sections)

    assert content == (
        "# Guide\n\nTwo units.\n\n## Contents\n\n"
        "- [beta](#beta)\n- [Alpha Unit](#alpha-unit)\n- [stray](#stray)\n\n"
        "## beta\n\nSecond.\n\n## Alpha Unit\n\nFirst.\n\n## stray\n\nUnplanned.\n"
    )


def test_render_without_sections_has_no_contents():
    content = render_document("Guide", DocOutline(overview="Nothing yet."), [])

    assert content == "# Guide\n\nNothing yet.\n"


class TestMarkdownValidator:
    def setup_method(self):
        self.validator = MarkdownValidator()

    def test_valid_document(self):
        result = self.validator.validate("# Title\n\nIntro.\n\n## Part\n\nBody.\n")

        assert result.valid
        assert result.warnings == []

    def test_empty_document(self):
        result = self.validator.validate("\n\n")

        assert [e.message for e in result.errors] == ["Documentation is empty"]

    def test_missing_heading(self):
        result = self.validator.validate("Intro.\n")

        assert not result.valid
        assert result.errors[0].message == "Missing top-level heading"
        assert result.errors[0].line == 1

    def test_unbalanced_fence_reports_opening_line(self):
        result = self.validator.validate("# Title\n\n```python\nx = 1\n")

        assert [(e.message, e.line) for e in result.errors] == [("Unbalanced code fence", 3)]

    def test_headings_inside_fences_are_ignored(self):
        content = "# Title\n\n```bash\n# a shell comment\n```\n\n## Part\n\nBody.\n"

        result = self.validator.validate(content)

        assert result.valid
        assert result.warnings == []

    def test_empty_section_warns(self):
        result = self.validator.validate("# Title\n\nIntro.\n\n## Empty\n\n## Full\n\nBody.\n")

        assert result.valid
        assert [(w.message, w.line) for w in result.warnings] == [("Section 'Empty' is empty", 5)]

    def test_fence_errors_get_no_fix(self):
        result = self.validator.validate("# Title\n```\n")

        assert self.validator.suggest_fixes(result.errors) == []


async def test_missing_heading_is_fixed_by_the_loop():
    outcome = await validate_and_fix("Intro.\n", MarkdownValidator(), max_retries=3)

    assert outcome.valid
    assert outcome.artifact == "# Documentation\n\nIntro.\n"
    assert outcome.fixes_applied == 1
