"""Documentation generation endpoints."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.encoders import jsonable_encoder

from legacylens.api.deps import get_job_registry, get_llm, get_settings
from legacylens.api.registry import JobRegistry
from legacylens.api.schemas import DocGenerationRequest, JobCreated
from legacylens.config import Config
from legacylens.docgen import DocumentationOptions, DocumentationOrchestrator
from legacylens.llm import LLMClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/docs", tags=["docs"])


@router.post("/generate", response_model=JobCreated, status_code=202)
async def generate_docs(
    request: DocGenerationRequest,
    background_tasks: BackgroundTasks,
    registry: JobRegistry = Depends(get_job_registry),
    settings: Config = Depends(get_settings),
    llm: LLMClient = Depends(get_llm),
) -> JobCreated:
    """Start documentation generation for a set of units."""
    record = registry.create("docs")
    orchestrator = DocumentationOrchestrator.from_settings(settings, llm)
    options = DocumentationOptions(
        title=request.title,
        max_retries=request.max_retries or settings.generation.validation_max_retries,
    )
    background_tasks.add_task(
        _run_doc_generation, record.job_id, orchestrator, request, options, registry
    )
    return JobCreated(job_id=record.job_id, status=record.status)


async def _run_doc_generation(
    job_id: str,
    orchestrator: DocumentationOrchestrator,
    request: DocGenerationRequest,
    options: DocumentationOptions,
    registry: JobRegistry,
) -> None:
    registry.mark_running(job_id)
    orchestrator.pipeline.on_progress(lambda event: registry.record_progress(job_id, event))
    try:
        result = await orchestrator.generate_documentation(
            [unit.to_unit() for unit in request.units], request.project_id, options, job_id=job_id
        )
    except Exception as e:
        logger.exception(f"Documentation job {job_id} crashed")
        registry.finish(job_id, success=False, errors=[str(e)])
        return

    registry.finish(
        job_id,
        success=result.success,
        result=jsonable_encoder(result.documentation) if result.documentation else None,
        errors=result.errors,
        warnings=result.warnings,
    )
