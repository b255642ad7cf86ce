"""Collaborators that turn unit analyses into Markdown documentation."""

import logging
import re
from typing import Protocol

from legacylens.docgen.models import DocOutline, DocSection, DocumentationOptions
from legacylens.llm import LLMClient
from legacylens.pipeline import Fix, FixLocation, GenerationFailedError, ValidationIssue, ValidationResult
from legacylens.units import GenerationUnit, UnitAnalysis, analyze_unit

logger = logging.getLogger(__name__)


class DocumentationSource(Protocol):
    """Produces every intermediate artifact of a documentation job."""

    async def analyze(self, unit: GenerationUnit) -> UnitAnalysis: ...

    async def plan(self, analyses: list[UnitAnalysis]) -> DocOutline: ...

    async def generate_section(self, analysis: UnitAnalysis) -> DocSection: ...

    async def fallback_section(self, analysis: UnitAnalysis) -> DocSection: ...

    async def assemble(
        self,
        outline: DocOutline,
        sections: list[DocSection],
        options: DocumentationOptions,
    ) -> str: ...


SYSTEM_PROMPT = (
    "You are a technical writer documenting legacy code for the engineers "
    "who will maintain it. Write concise Markdown without a top-level heading."
)


def _anchor(title: str) -> str:
    slug = re.sub(r"[^\w\- ]", "", title.lower()).strip()
    return re.sub(r"\s+", "-", slug)


class LLMDocumentationSource:
    """DocumentationSource backed by an LLM, with docstring-based fallbacks."""

    def __init__(self, llm_client: LLMClient):
        self.llm_client = llm_client

    async def analyze(self, unit: GenerationUnit) -> UnitAnalysis:
        return analyze_unit(unit)

    async def plan(self, analyses: list[UnitAnalysis]) -> DocOutline:
        """Order sections by file path, then unit name."""
        ordered = sorted(analyses, key=lambda a: (a.unit.file_path, a.unit.name))
        files = {a.unit.file_path for a in analyses}
        return DocOutline(
            overview=f"This document covers {len(analyses)} unit(s) across {len(files)} file(s).",
            unit_ids=[a.unit.unit_id for a in ordered],
        )

    async def generate_section(self, analysis: UnitAnalysis) -> DocSection:
        """Ask the LLM to document one unit.

        Raises:
            LLMError: If the provider call fails.
            GenerationFailedError: If the LLM returns nothing.
        """
        unit = analysis.unit
        prompt = (
            f"Document the {unit.kind.value} `{unit.name}` from {unit.file_path}.\n"
            f"Describe its purpose, its public interface and any errors it raises.\n\n"
            f"```{unit.language}\n{unit.source}\n```"
        )
        body = (await self.llm_client.generate(prompt, system_prompt=SYSTEM_PROMPT)).strip()
        if not body:
            raise GenerationFailedError(f"LLM returned empty documentation for {unit.name}")
        return DocSection(unit_id=unit.unit_id, title=unit.name, body=body)

    async def fallback_section(self, analysis: UnitAnalysis) -> DocSection:
        """Document a unit from its docstrings and signatures alone."""
        unit = analysis.unit
        lines = [f"Defined in `{unit.file_path}`."]
        if summary := analysis.docstrings.get(unit.name):
            lines.extend(["", summary])

        for name in analysis.callables:
            params = ", ".join(analysis.parameters.get(name, []))
            lines.extend(["", f"### `{name}({params})`", ""])
            lines.append(analysis.docstrings.get(name, "No description available."))

        if analysis.raises:
            lines.extend(["", "Raises: " + ", ".join(f"`{exc}`" for exc in analysis.raises)])

        logger.debug(f"Built fallback documentation for {unit.name}")
        return DocSection(
            unit_id=unit.unit_id,
            title=unit.name,
            body="\n".join(lines),
            used_fallback=True,
        )

    async def assemble(
        self,
        outline: DocOutline,
        sections: list[DocSection],
        options: DocumentationOptions,
    ) -> str:
        return render_document(options.title, outline, sections)


def render_document(title: str, outline: DocOutline, sections: list[DocSection]) -> str:
    """Render sections as one Markdown document in outline order.

    Sections for units missing from the outline are appended at the end.
    """
    position = {unit_id: i for i, unit_id in enumerate(outline.unit_ids)}
    ordered = sorted(sections, key=lambda s: position.get(s.unit_id, len(position)))

    lines = [f"# {title}", "", outline.overview]
    if ordered:
        lines.extend(["", "## Contents", ""])
        lines.extend(f"- [{s.title}](#{_anchor(s.title)})" for s in ordered)
    for section in ordered:
        lines.extend(["", f"## {section.title}", "", section.body])
    return "\n".join(lines) + "\n"


class MarkdownValidator:
    """Structural checks for generated Markdown documents."""

    def validate(self, content: str) -> ValidationResult:
        if not content.strip():
            return ValidationResult(valid=False, errors=[ValidationIssue("Documentation is empty")])

        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []
        lines = content.split("\n")

        first = next(line for line in lines if line.strip())
        if not first.startswith("# "):
            errors.append(ValidationIssue("Missing top-level heading", line=1))

        open_fence: int | None = None
        headings: list[tuple[int, str]] = []
        for number, line in enumerate(lines, start=1):
            if line.lstrip().startswith("```"):
                open_fence = number if open_fence is None else None
            elif open_fence is None and line.startswith("#"):
                headings.append((number, line))
        if open_fence is not None:
            errors.append(ValidationIssue("Unbalanced code fence", line=open_fence))

        for (number, heading), (next_number, _) in zip(headings, headings[1:]):
            if not any(line.strip() for line in lines[number:next_number - 1]):
                warnings.append(
                    ValidationIssue(f"Section '{heading.lstrip('#').strip()}' is empty", line=number)
                )

        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    def suggest_fixes(self, errors: list[ValidationIssue]) -> list[Fix]:
        """Propose a heading for a document missing one. Fences are not auto-fixed."""
        return [
            Fix(
                description="Add top-level heading",
                code="# Documentation\n",
                location=FixLocation(line=1),
            )
            for error in errors
            if error.message == "Missing top-level heading"
        ]
