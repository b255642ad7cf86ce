"""Documentation synthesis built on the resilient generation pipeline."""

from legacylens.docgen.models import (
    DocOutline,
    DocSection,
    Documentation,
    DocumentationOptions,
    DocumentationResult,
)
from legacylens.docgen.orchestrator import DocumentationOrchestrator
from legacylens.docgen.sources import (
    DocumentationSource,
    LLMDocumentationSource,
    MarkdownValidator,
    render_document,
)

__all__ = [
    "DocOutline",
    "DocSection",
    "Documentation",
    "DocumentationOptions",
    "DocumentationOrchestrator",
    "DocumentationResult",
    "DocumentationSource",
    "LLMDocumentationSource",
    "MarkdownValidator",
    "render_document",
]
