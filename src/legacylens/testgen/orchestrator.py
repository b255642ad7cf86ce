"""Test generation job.

Drives one unit through analyze -> plan -> generate -> assemble ->
validate on top of a ResilientOrchestrator. Test case kinds are generated
independently; a kind whose AI generation fails unrecoverably degrades to
template cases, and a kind that fails outright is reported as a warning
without aborting the job.
"""

import logging
import uuid

from legacylens.config import Config
from legacylens.llm import LLMClient
from legacylens.pipeline import (
    AnalysisError,
    ArtifactStatus,
    GenerationResult,
    GenerationStage,
    OperationContext,
    ResilientOrchestrator,
    Validator,
    validate_and_fix,
)
from legacylens.testgen.models import (
    Mock,
    TestCase,
    TestCaseKind,
    TestGenerationOptions,
    TestGenerationResult,
    TestSuite,
    estimate_coverage_improvement,
)
from legacylens.testgen.sources import LLMTestCaseSource, PythonTestValidator, TestCaseSource
from legacylens.units import GenerationUnit, UnitAnalysis

logger = logging.getLogger(__name__)


class TestGenerationOrchestrator:
    """Generates a validated test suite for one unit of code.

    Each call to generate_tests() is one job; the underlying pipeline must
    be fresh (or reset) for every job.
    """

    __test__ = False

    def __init__(
        self,
        source: TestCaseSource,
        validator: Validator,
        pipeline: ResilientOrchestrator | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            source: Produces analyses, plans, test cases, mocks and test code.
            validator: Validates the assembled test code.
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
    ) -> "TestGenerationOrchestrator":
        """Build an orchestrator with the default LLM-backed collaborators."""
        client = llm_client or LLMClient.from_settings(settings)
        return cls(
            source=LLMTestCaseSource(client),
            validator=PythonTestValidator(),
            pipeline=ResilientOrchestrator.from_settings(settings),
        )

    async def generate_tests(
        self,
        unit: GenerationUnit,
        project_id: str,
        options: TestGenerationOptions | None = None,
        job_id: str | None = None,
    ) -> TestGenerationResult:
        """Generate a test suite for a unit.

        Args:
            unit: Unit under test.
            project_id: Project the unit belongs to.
            options: Framework and validation settings.
            job_id: Identifier for the job (generated if omitted).

        Returns:
            TestGenerationResult. On an unexpected failure success is False
            and the result carries whatever test cases were completed.

        Raises:
            PipelineStateError: If the pipeline has already run a job.
        """
        options = options or TestGenerationOptions()
        job_id = job_id or str(uuid.uuid4())
        pipeline = self.pipeline
        partials = pipeline.partial_results

        pipeline.begin_job()
        partials.initialize(job_id, project_id, unit.file_path, framework=options.framework)
        warnings: list[str] = []

        try:
            analysis = await self._analyze(job_id, unit)

            partials.update_stage(job_id, GenerationStage.PLANNING)
            with pipeline.stage(GenerationStage.PLANNING, f"Planning tests for {unit.name}"):
                plan = await self.source.plan(analysis)

            partials.update_stage(job_id, GenerationStage.GENERATING)
            test_cases = await self._generate_cases(job_id, plan.kinds, analysis, warnings)

            mocks: list[Mock] = []
            mock_result = await pipeline.execute_with_isolation(
                lambda: self.source.generate_mocks(plan),
                OperationContext(stage=GenerationStage.GENERATING.value, file_path=unit.file_path),
            )
            if mock_result.success:
                mocks = mock_result.data or []
            else:
                warnings.append(
                    f"Mock generation failed, continuing without mocks: {mock_result.error.message}"
                )

            test_code = await self.source.write_suite(unit, test_cases, mocks, options)
            partials.update_partial_artifact(job_id, test_code)

            partials.update_stage(job_id, GenerationStage.VALIDATING)
            with pipeline.stage(GenerationStage.VALIDATING, f"Validating tests for {unit.name}"):
                outcome = await validate_and_fix(test_code, self.validator, options.max_retries)
            warnings.extend(outcome.notes)
            warnings.extend(issue.message for issue in outcome.warnings)

            suite = TestSuite(
                id=job_id,
                project_id=project_id,
                target_file=unit.file_path,
                framework=options.framework,
                test_code=outcome.artifact,
                test_cases=test_cases,
                mocks=mocks,
                coverage_improvement=estimate_coverage_improvement(len(test_cases)),
                status=outcome.status,
            )

            pipeline.mark_stage(
                GenerationStage.COMPLETE,
                f"Generated {len(test_cases)} test case(s) for {unit.name}",
                complete=True,
            )
            partials.update_stage(job_id, GenerationStage.COMPLETE)

            return TestGenerationResult(
                success=True,
                test_suite=suite,
                errors=[issue.message for issue in outcome.errors],
                warnings=warnings,
                progress=pipeline.progress_history,
            )

        except Exception as e:
            logger.exception(f"Test generation failed for {unit.name}")
            partials.add_error(job_id, str(e))
            partials.update_stage(job_id, GenerationStage.FAILED)
            pipeline.mark_stage(
                GenerationStage.FAILED, f"Test generation failed: {e}", complete=True
            )

            suite = None
            partial = partials.get(job_id)
            if partial is not None and partial.completed_units:
                suite = TestSuite(
                    id=job_id,
                    project_id=project_id,
                    target_file=unit.file_path,
                    framework=options.framework,
                    test_code=partial.partial_artifact or "",
                    test_cases=list(partial.completed_units),
                    coverage_improvement=estimate_coverage_improvement(
                        len(partial.completed_units)
                    ),
                    status=ArtifactStatus.FAILED,
                )

            return TestGenerationResult(
                success=False,
                test_suite=suite,
                errors=[str(e), *(error.message for error in pipeline.get_errors())],
                warnings=warnings,
                progress=pipeline.progress_history,
            )

        finally:
            partials.remove(job_id)
            pipeline.end_job()

    async def _analyze(self, job_id: str, unit: GenerationUnit) -> UnitAnalysis:
        self.pipeline.mark_stage(GenerationStage.ANALYZING, f"Analyzing {unit.name}")
        self.pipeline.partial_results.update_stage(job_id, GenerationStage.ANALYZING)

        result = await self.pipeline.execute_with_retry(
            lambda: self.pipeline.execute_with_cache(
                f"analysis:{unit.unit_id}",
                lambda: self.source.analyze(unit),
                content=unit.source,
            ),
            OperationContext(stage=GenerationStage.ANALYZING.value, file_path=unit.file_path),
        )
        if not result.success:
            raise AnalysisError(f"Failed to analyze {unit.name}: {result.error.message}")
        self.pipeline.progress_tracker.complete_stage(f"Analyzed {unit.name}")
        return result.data

    async def _generate_cases(
        self,
        job_id: str,
        kinds: list[TestCaseKind],
        analysis: UnitAnalysis,
        warnings: list[str],
    ) -> list[TestCase]:
        partials = self.pipeline.partial_results

        def record(kind: TestCaseKind, result: GenerationResult[list[TestCase]]) -> None:
            if result.success:
                partials.add_completed_units(job_id, result.data or [])
            else:
                partials.add_failed_unit(job_id, f"{kind.value}_tests")

        results = await self.pipeline.fan_out_with_fallback(
            kinds,
            primary_for=lambda kind: lambda: self.source.generate_cases(kind, analysis),
            fallback_for=lambda kind: lambda: self.source.fallback_cases(kind, analysis),
            stage=GenerationStage.GENERATING,
            item_id=lambda kind: kind.value,
            on_result=record,
        )

        test_cases: list[TestCase] = []
        for kind, result in zip(kinds, results):
            label = kind.value.replace("_", " ")
            if result.success:
                test_cases.extend(result.data or [])
                warnings.extend(f"{label} tests: {warning}" for warning in result.warnings)
            else:
                warnings.append(f"{label.capitalize()} test generation failed: {result.error.message}")
        return test_cases
