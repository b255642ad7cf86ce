"""In-memory registry of generation jobs submitted through the API."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from legacylens.constants import MAX_TRACKED_JOBS
from legacylens.pipeline import ProgressEvent


@dataclass
class JobRecord:
    """Status of one submitted job.

    status moves pending -> running -> completed | failed.
    """

    job_id: str
    type: str
    status: str = "pending"
    created_at: datetime = field(default_factory=datetime.now)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    stage: str | None = None
    current: int = 0
    total: int = 0
    message: str | None = None
    result: Any = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def progress(self) -> int:
        if self.status == "completed":
            return 100
        if self.total == 0:
            return 0
        return round(self.current / self.total * 100)

    @property
    def finished(self) -> bool:
        return self.status in ("completed", "failed")


class JobRegistry:
    """Jobs keyed by id. Lost on restart.

    Creating a job beyond max_jobs evicts the oldest finished jobs.
    Pending and running jobs are always kept.
    """

    def __init__(self, max_jobs: int = MAX_TRACKED_JOBS):
        self.max_jobs = max_jobs
        self._jobs: dict[str, JobRecord] = {}

    def create(self, job_type: str) -> JobRecord:
        record = JobRecord(job_id=str(uuid.uuid4()), type=job_type)
        self._jobs[record.job_id] = record
        self._evict_finished()
        return record

    def get(self, job_id: str) -> JobRecord | None:
        return self._jobs.get(job_id)

    def list_recent(self, limit: int = 20) -> list[JobRecord]:
        """Most recently created jobs first."""
        jobs = sorted(self._jobs.values(), key=lambda j: j.created_at, reverse=True)
        return jobs[:limit]

    def mark_running(self, job_id: str) -> None:
        if record := self._jobs.get(job_id):
            record.status = "running"
            record.started_at = datetime.now()

    def record_progress(self, job_id: str, event: ProgressEvent) -> None:
        if record := self._jobs.get(job_id):
            record.stage = event.stage.value
            record.current = event.current
            record.total = event.total
            record.message = event.message

    def finish(
        self,
        job_id: str,
        success: bool,
        result: Any = None,
        errors: list[str] | None = None,
        warnings: list[str] | None = None,
    ) -> None:
        """Mark a job completed (or failed) and attach its output."""
        if record := self._jobs.get(job_id):
            record.status = "completed" if success else "failed"
            record.completed_at = datetime.now()
            record.result = result
            record.errors = list(errors or [])
            record.warnings = list(warnings or [])

    def clear(self) -> None:
        self._jobs.clear()

    def _evict_finished(self) -> None:
        excess = len(self._jobs) - self.max_jobs
        if excess <= 0:
            return
        # Insertion order is creation order
        stale = [job_id for job_id, record in self._jobs.items() if record.finished][:excess]
        for job_id in stale:
            del self._jobs[job_id]

    def __len__(self) -> int:
        return len(self._jobs)
