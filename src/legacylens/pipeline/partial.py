"""Partial results kept while a job runs, so a failed job still returns output."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Iterable, TypeVar

from legacylens.pipeline.progress import GenerationStage

T = TypeVar("T")


@dataclass
class PartialResult(Generic[T]):
    """Best-effort output accumulated by one job.

    Attributes:
        job_id: Identifier of the owning job.
        project_id: Project the job belongs to.
        target: File (or other target) the job generates for.
        stage: Last stage the job entered.
        completed_units: Units (test cases, doc sections) finished so far.
        failed_unit_ids: Identifiers of units that could not be generated.
        partial_artifact: Most recent assembled artifact text, if any.
        errors: Job-level error messages.
        metadata: Free-form job attributes (framework, title, ...).
        last_updated: Time of the last mutation.
    """

    job_id: str
    project_id: str
    target: str
    stage: GenerationStage = GenerationStage.ANALYZING
    completed_units: list[T] = field(default_factory=list)
    failed_unit_ids: list[str] = field(default_factory=list)
    partial_artifact: str | None = None
    errors: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=datetime.now)


class PartialResultManager(Generic[T]):
    """Holds in-flight partial results keyed by job id.

    Every mutator is a no-op for unknown job ids, so a job that has already
    been removed cannot be resurrected by a late writer.
    """

    def __init__(self):
        self._results: dict[str, PartialResult[T]] = {}

    def initialize(
        self,
        job_id: str,
        project_id: str,
        target: str,
        **metadata: Any,
    ) -> PartialResult[T]:
        """Create (or replace) the partial result for a job."""
        partial: PartialResult[T] = PartialResult(
            job_id=job_id,
            project_id=project_id,
            target=target,
            metadata=dict(metadata),
        )
        self._results[job_id] = partial
        return partial

    def update_stage(self, job_id: str, stage: GenerationStage) -> None:
        if partial := self._results.get(job_id):
            partial.stage = stage
            partial.last_updated = datetime.now()

    def add_completed_unit(self, job_id: str, unit: T) -> None:
        self.add_completed_units(job_id, [unit])

    def add_completed_units(self, job_id: str, units: Iterable[T]) -> None:
        if partial := self._results.get(job_id):
            partial.completed_units.extend(units)
            partial.last_updated = datetime.now()

    def add_failed_unit(self, job_id: str, unit_id: str) -> None:
        if partial := self._results.get(job_id):
            partial.failed_unit_ids.append(unit_id)
            partial.last_updated = datetime.now()

    def update_partial_artifact(self, job_id: str, artifact: str) -> None:
        if partial := self._results.get(job_id):
            partial.partial_artifact = artifact
            partial.last_updated = datetime.now()

    def add_error(self, job_id: str, error: str) -> None:
        if partial := self._results.get(job_id):
            partial.errors.append(error)
            partial.last_updated = datetime.now()

    def get(self, job_id: str) -> PartialResult[T] | None:
        return self._results.get(job_id)

    def has_completed_units(self, job_id: str) -> bool:
        partial = self._results.get(job_id)
        return bool(partial and partial.completed_units)

    def get_all(self) -> list[PartialResult[T]]:
        return list(self._results.values())

    def get_by_project(self, project_id: str) -> list[PartialResult[T]]:
        return [p for p in self._results.values() if p.project_id == project_id]

    def get_summary(self, job_id: str) -> str:
        """Describe the progress of a job in one line."""
        partial = self._results.get(job_id)
        if partial is None:
            return "No partial result found."

        parts = [
            f"Stage: {partial.stage.value}",
            f"Completed units: {len(partial.completed_units)}",
        ]
        if partial.failed_unit_ids:
            parts.append(f"Failed units: {len(partial.failed_unit_ids)}")
        if partial.errors:
            parts.append(f"Errors: {len(partial.errors)}")
        return ", ".join(parts)

    def remove(self, job_id: str) -> None:
        self._results.pop(job_id, None)

    def clear(self) -> None:
        self._results.clear()

    def __len__(self) -> int:
        return len(self._results)
