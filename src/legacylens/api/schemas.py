"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from legacylens.units import GenerationUnit, UnitKind


class UnitPayload(BaseModel):
    """A unit of source code submitted for generation."""

    unit_id: str | None = Field(None, description="Identifier; defaults to file_path::name")
    name: str
    kind: Literal["file", "function", "class"] = "file"
    file_path: str
    source: str
    language: str = "python"

    def to_unit(self) -> GenerationUnit:
        return GenerationUnit(
            unit_id=self.unit_id or f"{self.file_path}::{self.name}",
            name=self.name,
            kind=UnitKind(self.kind),
            file_path=self.file_path,
            source=self.source,
            language=self.language,
        )


class TestGenerationRequest(BaseModel):
    """Request to generate a test suite for one unit."""

    __test__ = False

    project_id: str
    unit: UnitPayload
    framework: str = "pytest"
    max_retries: int | None = Field(None, ge=1, description="Validation passes; config default if omitted")


class DocGenerationRequest(BaseModel):
    """Request to generate documentation for a set of units."""

    project_id: str
    units: list[UnitPayload] = Field(..., min_length=1)
    title: str = "Documentation"
    max_retries: int | None = Field(None, ge=1, description="Validation passes; config default if omitted")


class JobCreated(BaseModel):
    """Job creation response."""

    job_id: str
    status: str = "pending"
    message: str = "Job started"


class JobStatus(BaseModel):
    """Job status response."""

    job_id: str
    type: str
    status: str
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    stage: str | None = None
    progress: int = 0
    message: str | None = None
    result: Any = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
