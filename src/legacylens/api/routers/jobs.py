"""Job status endpoints."""

import asyncio
import json

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from legacylens.api.deps import get_job_registry
from legacylens.api.registry import JobRecord, JobRegistry
from legacylens.api.schemas import JobStatus

router = APIRouter(prefix="/api/jobs", tags=["jobs"])

STREAM_POLL_INTERVAL_SECONDS = 0.5


def _to_status(record: JobRecord) -> JobStatus:
    return JobStatus(
        job_id=record.job_id,
        type=record.type,
        status=record.status,
        created_at=record.created_at,
        started_at=record.started_at,
        completed_at=record.completed_at,
        stage=record.stage,
        progress=record.progress,
        message=record.message,
        result=record.result,
        errors=record.errors,
        warnings=record.warnings,
    )


@router.get("", response_model=list[JobStatus])
async def list_jobs(
    registry: JobRegistry = Depends(get_job_registry),
    limit: int = 20,
) -> list[JobStatus]:
    """List recent generation jobs."""
    return [_to_status(record) for record in registry.list_recent(limit)]


@router.get("/{job_id}", response_model=JobStatus)
async def get_job(
    job_id: str,
    registry: JobRegistry = Depends(get_job_registry),
) -> JobStatus:
    """Get status of a specific job."""
    record = registry.get(job_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return _to_status(record)


@router.get("/{job_id}/stream")
async def stream_job_progress(
    job_id: str,
    registry: JobRegistry = Depends(get_job_registry),
):
    """Stream job progress via SSE."""
    if registry.get(job_id) is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")

    async def event_generator():
        """Generate SSE events until the job finishes."""
        while True:
            record = registry.get(job_id)
            if record is None:
                break

            event_data = {
                "job_id": record.job_id,
                "status": record.status,
                "stage": record.stage,
                "current": record.current,
                "total": record.total,
                "progress": record.progress,
                "message": record.message,
            }

            if record.status == "completed":
                event_data["warnings"] = record.warnings
                yield f"event: complete\ndata: {json.dumps(event_data)}\n\n"
                break
            elif record.status == "failed":
                event_data["errors"] = record.errors
                yield f"event: error\ndata: {json.dumps(event_data)}\n\n"
                break
            else:
                yield f"event: progress\ndata: {json.dumps(event_data)}\n\n"

            await asyncio.sleep(STREAM_POLL_INTERVAL_SECONDS)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
