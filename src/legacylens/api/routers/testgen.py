"""Test generation endpoints."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.encoders import jsonable_encoder

from legacylens.api.deps import get_job_registry, get_llm, get_settings
from legacylens.api.registry import JobRegistry
from legacylens.api.schemas import JobCreated, TestGenerationRequest
from legacylens.config import Config
from legacylens.llm import LLMClient
from legacylens.testgen import TestGenerationOptions, TestGenerationOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tests", tags=["tests"])


@router.post("/generate", response_model=JobCreated, status_code=202)
async def generate_tests(
    request: TestGenerationRequest,
    background_tasks: BackgroundTasks,
    registry: JobRegistry = Depends(get_job_registry),
    settings: Config = Depends(get_settings),
    llm: LLMClient = Depends(get_llm),
) -> JobCreated:
    """Start test generation for one unit."""
    record = registry.create("tests")
    # One pipeline per job
    orchestrator = TestGenerationOrchestrator.from_settings(settings, llm)
    options = TestGenerationOptions(
        framework=request.framework,
        language=request.unit.language,
        max_retries=request.max_retries or settings.generation.validation_max_retries,
    )
    background_tasks.add_task(
        _run_test_generation, record.job_id, orchestrator, request, options, registry
    )
    return JobCreated(job_id=record.job_id, status=record.status)


async def _run_test_generation(
    job_id: str,
    orchestrator: TestGenerationOrchestrator,
    request: TestGenerationRequest,
    options: TestGenerationOptions,
    registry: JobRegistry,
) -> None:
    registry.mark_running(job_id)
    orchestrator.pipeline.on_progress(lambda event: registry.record_progress(job_id, event))
    try:
        result = await orchestrator.generate_tests(
            request.unit.to_unit(), request.project_id, options, job_id=job_id
        )
    except Exception as e:
        logger.exception(f"Test generation job {job_id} crashed")
        registry.finish(job_id, success=False, errors=[str(e)])
        return

    registry.finish(
        job_id,
        success=result.success,
        result=jsonable_encoder(result.test_suite) if result.test_suite else None,
        errors=result.errors,
        warnings=result.warnings,
    )
