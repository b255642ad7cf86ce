"""Documentation generation job.

Drives a set of units through analyze -> plan -> generate -> assemble ->
validate on top of a ResilientOrchestrator. Analysis and section generation
fan out over units; a unit that fails at either stage is left out of the
document and listed in failed_units.
"""

import logging
import uuid

from legacylens.config import Config
from legacylens.docgen.models import (
    DocOutline,
    DocSection,
    Documentation,
    DocumentationOptions,
    DocumentationResult,
)
from legacylens.docgen.sources import (
    DocumentationSource,
    LLMDocumentationSource,
    MarkdownValidator,
    render_document,
)
from legacylens.llm import LLMClient
from legacylens.pipeline import (
    ArtifactStatus,
    GenerationFailedError,
    GenerationResult,
    GenerationStage,
    ResilientOrchestrator,
    Validator,
    validate_and_fix,
)
from legacylens.units import GenerationUnit, UnitAnalysis

logger = logging.getLogger(__name__)


class DocumentationOrchestrator:
    """Generates one Markdown document for a set of units."""

    def __init__(
        self,
        source: DocumentationSource,
        validator: Validator | None = None,
        pipeline: ResilientOrchestrator | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            source: Produces analyses, outline, sections and the assembled document.
            validator: Optional validator for the assembled document.
            pipeline: Resilient orchestrator for this job.
        """
        self.source = source
        self.validator = validator
        self.pipeline = pipeline or ResilientOrchestrator()

    @classmethod
    def from_settings(
        cls,
        settings: Config,
        llm_client: LLMClient | None = None,
    ) -> "DocumentationOrchestrator":
        """Build an orchestrator with the default LLM-backed collaborators."""
        client = llm_client or LLMClient.from_settings(settings)
        return cls(
            source=LLMDocumentationSource(client),
            validator=MarkdownValidator(),
            pipeline=ResilientOrchestrator.from_settings(settings),
        )

    async def generate_documentation(
        self,
        units: list[GenerationUnit],
        project_id: str,
        options: DocumentationOptions | None = None,
        job_id: str | None = None,
    ) -> DocumentationResult:
        """Generate documentation for a set of units.

        Args:
            units: Units to document.
            project_id: Project the units belong to.
            options: Title and validation settings.
            job_id: Identifier for the job (generated if omitted).

        Returns:
            DocumentationResult. On failure success is False and the result
            carries the sections completed so far, if any.

        Raises:
            PipelineStateError: If the pipeline has already run a job.
        """
        options = options or DocumentationOptions()
        job_id = job_id or str(uuid.uuid4())
        pipeline = self.pipeline
        partials = pipeline.partial_results

        pipeline.begin_job()
        partials.initialize(job_id, project_id, options.title, unit_count=len(units))
        warnings: list[str] = []
        failed_units: list[str] = []

        try:
            partials.update_stage(job_id, GenerationStage.ANALYZING)
            analyses = await self._analyze(job_id, units, failed_units, warnings)
            if not analyses:
                raise GenerationFailedError("No units could be analyzed")

            partials.update_stage(job_id, GenerationStage.PLANNING)
            with pipeline.stage(
                GenerationStage.PLANNING, f"Planning documentation for {len(analyses)} unit(s)"
            ):
                outline = await self.source.plan(analyses)

            partials.update_stage(job_id, GenerationStage.GENERATING)
            sections = await self._generate_sections(job_id, analyses, failed_units, warnings)
            if not sections:
                raise GenerationFailedError("No documentation sections could be generated")

            content = await self.source.assemble(outline, sections, options)
            partials.update_partial_artifact(job_id, content)

            status = ArtifactStatus.GENERATED
            errors: list[str] = []
            if self.validator is not None:
                partials.update_stage(job_id, GenerationStage.VALIDATING)
                with pipeline.stage(GenerationStage.VALIDATING, "Validating documentation"):
                    outcome = await validate_and_fix(content, self.validator, options.max_retries)
                content = outcome.artifact
                status = outcome.status
                errors = [issue.message for issue in outcome.errors]
                warnings.extend(outcome.notes)
                warnings.extend(issue.message for issue in outcome.warnings)

            documentation = Documentation(
                id=job_id,
                project_id=project_id,
                title=options.title,
                content=content,
                sections=sections,
                failed_units=failed_units,
                status=status,
            )

            pipeline.mark_stage(
                GenerationStage.COMPLETE,
                f"Documented {len(sections)} of {len(units)} unit(s)",
                complete=True,
            )
            partials.update_stage(job_id, GenerationStage.COMPLETE)

            return DocumentationResult(
                success=True,
                documentation=documentation,
                errors=errors,
                warnings=warnings,
                progress=pipeline.progress_history,
            )

        except Exception as e:
            logger.exception(f"Documentation generation failed for project {project_id}")
            partials.add_error(job_id, str(e))
            partials.update_stage(job_id, GenerationStage.FAILED)
            pipeline.mark_stage(
                GenerationStage.FAILED, f"Documentation generation failed: {e}", complete=True
            )

            documentation = None
            partial = partials.get(job_id)
            if partial is not None and partial.completed_units:
                completed = list(partial.completed_units)
                content = partial.partial_artifact or render_document(
                    options.title,
                    DocOutline(overview="Partial documentation."),
                    completed,
                )
                documentation = Documentation(
                    id=job_id,
                    project_id=project_id,
                    title=options.title,
                    content=content,
                    sections=completed,
                    failed_units=list(partial.failed_unit_ids),
                    status=ArtifactStatus.FAILED,
                )

            return DocumentationResult(
                success=False,
                documentation=documentation,
                errors=[str(e), *(error.message for error in pipeline.get_errors())],
                warnings=warnings,
                progress=pipeline.progress_history,
            )

        finally:
            partials.remove(job_id)
            pipeline.end_job()

    async def _analyze(
        self,
        job_id: str,
        units: list[GenerationUnit],
        failed_units: list[str],
        warnings: list[str],
    ) -> list[UnitAnalysis]:
        def analyze(unit: GenerationUnit):
            return self.pipeline.execute_with_cache(
                f"analysis:{unit.unit_id}",
                lambda: self.source.analyze(unit),
                content=unit.source,
            )

        results = await self.pipeline.process_units_with_isolation(
            units,
            analyze,
            stage=GenerationStage.ANALYZING,
            unit_id=lambda unit: unit.file_path,
        )

        analyses = []
        for unit, result in zip(units, results):
            if result.success:
                analyses.append(result.data)
            else:
                failed_units.append(unit.unit_id)
                self.pipeline.partial_results.add_failed_unit(job_id, unit.unit_id)
                warnings.append(f"Analysis failed for {unit.name}: {result.error.message}")
        return analyses

    async def _generate_sections(
        self,
        job_id: str,
        analyses: list[UnitAnalysis],
        failed_units: list[str],
        warnings: list[str],
    ) -> list[DocSection]:
        partials = self.pipeline.partial_results

        def record(analysis: UnitAnalysis, result: GenerationResult[DocSection]) -> None:
            if result.success:
                partials.add_completed_unit(job_id, result.data)
            else:
                partials.add_failed_unit(job_id, analysis.unit.unit_id)

        results = await self.pipeline.fan_out_with_fallback(
            analyses,
            primary_for=lambda analysis: lambda: self.source.generate_section(analysis),
            fallback_for=lambda analysis: lambda: self.source.fallback_section(analysis),
            stage=GenerationStage.GENERATING,
            item_id=lambda analysis: analysis.unit.file_path,
            on_result=record,
        )

        sections = []
        for analysis, result in zip(analyses, results):
            name = analysis.unit.name
            if result.success:
                sections.append(result.data)
                warnings.extend(f"{name}: {warning}" for warning in result.warnings)
            else:
                failed_units.append(analysis.unit.unit_id)
                warnings.append(f"Documentation failed for {name}: {result.error.message}")
        return sections
