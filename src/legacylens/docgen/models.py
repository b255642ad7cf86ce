"""Data models for documentation synthesis."""

from dataclasses import dataclass, field
from datetime import datetime

from legacylens.constants import VALIDATION_MAX_RETRIES
from legacylens.pipeline import ArtifactStatus, ProgressEvent


@dataclass
class DocSection:
    """Documentation for one unit.

    Attributes:
        unit_id: Unit the section documents.
        title: Section heading.
        body: Markdown body, without the heading.
        used_fallback: True if the body came from the deterministic fallback.
    """

    unit_id: str
    title: str
    body: str
    used_fallback: bool = False


@dataclass
class DocOutline:
    """Order and framing of the sections in a document."""

    overview: str
    unit_ids: list[str] = field(default_factory=list)


@dataclass
class Documentation:
    """An assembled Markdown document for a set of units."""

    id: str
    project_id: str
    title: str
    content: str
    sections: list[DocSection] = field(default_factory=list)
    failed_units: list[str] = field(default_factory=list)
    status: ArtifactStatus = ArtifactStatus.GENERATED
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class DocumentationOptions:
    title: str = "Documentation"
    max_retries: int = VALIDATION_MAX_RETRIES


@dataclass
class DocumentationResult:
    """Outcome of a documentation job.

    A failed job still carries the sections completed before the failure.
    """

    success: bool
    documentation: Documentation | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    progress: list[ProgressEvent] = field(default_factory=list)
