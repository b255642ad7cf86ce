"""Resilient orchestrator for multi-stage generation jobs.

This module provides the ResilientOrchestrator class that composes the
pipeline building blocks:

1. ProgressTracker - throttled progress events per stage
2. CacheManager - content-aware memoization of expensive analysis
3. ErrorHandler - per-unit isolation, retry and recoverability classification
4. PartialResultManager - best-effort output retained across failures

Job-specific orchestrators (test synthesis, documentation synthesis) drive
their stages through one ResilientOrchestrator per job.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator, Sequence, TypeVar

from legacylens.config import Config
from legacylens.constants import FALLBACK_WARNING
from legacylens.pipeline.cache import CacheManager, CacheStats
from legacylens.pipeline.errors import (
    ErrorHandler,
    GenerationError,
    GenerationResult,
    Operation,
    OperationContext,
    PipelineStateError,
    RetryPolicy,
)
from legacylens.pipeline.partial import PartialResultManager
from legacylens.pipeline.progress import (
    GenerationStage,
    ProgressCallback,
    ProgressEvent,
    ProgressTracker,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")


class ResilientOrchestrator:
    """Runs pipeline stages with isolation, retry, caching and graceful degradation.

    The cache, error log and partial results accumulate state. An instance
    serves one job at a time: begin_job() refuses to start a second job until
    reset() has been called, instead of silently scoping state per call.

    Attributes:
        progress_tracker: Tracker that emits progress events.
        error_handler: Handler that isolates and records failures.
        cache_manager: Cache for analysis results.
        partial_results: Manager for partial job output.
    """

    def __init__(
        self,
        progress_tracker: ProgressTracker | None = None,
        error_handler: ErrorHandler | None = None,
        cache_manager: CacheManager[Any] | None = None,
        partial_results: PartialResultManager[Any] | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            progress_tracker: Optional tracker (defaults to a fresh ProgressTracker).
            error_handler: Optional error handler (defaults to a fresh ErrorHandler).
            cache_manager: Optional cache (defaults to a fresh CacheManager).
            partial_results: Optional partial result manager.
        """
        self.progress_tracker = progress_tracker or ProgressTracker()
        self.error_handler = error_handler or ErrorHandler()
        self.cache_manager = cache_manager or CacheManager()
        self.partial_results = partial_results or PartialResultManager()

        self._progress_history: list[ProgressEvent] = []
        self.progress_tracker.on_progress(self._progress_history.append)
        self._job_active = False
        self._jobs_since_reset = 0

    @classmethod
    def from_settings(cls, settings: Config, **overrides: Any) -> "ResilientOrchestrator":
        """Build an orchestrator whose managers are configured from settings.

        Args:
            settings: Application configuration.
            **overrides: Pre-built managers to use instead of configured ones.

        Returns:
            A fresh ResilientOrchestrator.
        """
        components: dict[str, Any] = {
            "progress_tracker": ProgressTracker(
                min_emit_interval_ms=settings.progress.min_emit_interval_ms
            ),
            "error_handler": ErrorHandler(
                policy=RetryPolicy(
                    max_attempts=settings.generation.max_retries,
                    base_delay_ms=settings.generation.retry_base_delay_ms,
                )
            ),
            "cache_manager": CacheManager(
                ttl_ms=settings.cache.ttl_ms,
                max_size=settings.cache.max_size,
            ),
        }
        components.update(overrides)
        return cls(**components)

    # ------------------------------------------------------------------
    # Job lifecycle
    # ------------------------------------------------------------------

    @property
    def job_active(self) -> bool:
        return self._job_active

    def begin_job(self) -> None:
        """Mark the start of a job.

        Raises:
            PipelineStateError: If a job is running, or one has run since the last reset().
        """
        if self._job_active:
            raise PipelineStateError("A job is already running on this orchestrator")
        if self._jobs_since_reset > 0:
            raise PipelineStateError(
                "Orchestrator state from a previous job is still present; "
                "call reset() or use a new orchestrator per job"
            )
        self._job_active = True
        self._jobs_since_reset += 1

    def end_job(self) -> None:
        self._job_active = False

    def reset(self) -> None:
        """Clear progress, errors, cache and partial results between jobs.

        Raises:
            PipelineStateError: If called while a job is running.
        """
        if self._job_active:
            raise PipelineStateError("Cannot reset while a job is running")
        self.progress_tracker.reset()
        self.error_handler.clear_errors()
        self.cache_manager.clear()
        self.partial_results.clear()
        self._progress_history.clear()
        self._jobs_since_reset = 0

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def on_progress(self, callback: ProgressCallback) -> None:
        self.progress_tracker.on_progress(callback)

    def off_progress(self, callback: ProgressCallback) -> None:
        self.progress_tracker.off_progress(callback)

    @property
    def progress_history(self) -> list[ProgressEvent]:
        """Every event emitted since the last reset, in emission order."""
        return list(self._progress_history)

    def mark_stage(self, stage: GenerationStage, message: str, complete: bool = False) -> None:
        """Emit a single-step stage (used for stage boundaries without fan-out).

        Args:
            stage: Stage being entered.
            message: Progress message, also logged.
            complete: Also report the stage as finished (100%).
        """
        logger.info(message)
        self.progress_tracker.start_stage(stage, 1, message)
        if complete:
            self.progress_tracker.complete_stage(message)

    @contextmanager
    def stage(self, stage: GenerationStage, message: str) -> Iterator[None]:
        """Enter a single-step stage and report it finished when the block exits.

        If the block raises, the stage is left unfinished and the error propagates;
        the caller reports the failure through the FAILED stage instead.

        Example:
            with pipeline.stage(GenerationStage.PLANNING, "Planning tests"):
                plan = await source.plan(analysis)
        """
        self.mark_stage(stage, message)
        yield
        self.progress_tracker.complete_stage()

    # ------------------------------------------------------------------
    # Execution primitives
    # ------------------------------------------------------------------

    async def process_units_with_isolation(
        self,
        units: Sequence[U],
        processor: Callable[[U], Awaitable[T]],
        stage: GenerationStage,
        unit_id: Callable[[U], str] = str,
    ) -> list[GenerationResult[T]]:
        """Run processor over every unit concurrently, isolating each failure.

        Progress advances once per finished unit, whether it succeeded or not.

        Args:
            units: Units to process.
            processor: Async function producing a result for one unit.
            stage: Stage reported to the progress tracker.
            unit_id: Identifier used as the error context's file path.

        Returns:
            One GenerationResult per unit, in input order.
        """
        self.progress_tracker.start_stage(
            stage, len(units), f"Starting {stage.value} for {len(units)} units"
        )

        def make_operation(unit: U) -> Operation[T]:
            async def operation() -> T:
                try:
                    return await processor(unit)
                finally:
                    self.progress_tracker.increment_progress(f"Processed {unit_id(unit)}")

            return operation

        results = await self.error_handler.execute_all_with_isolation(
            [
                (make_operation(unit), OperationContext(stage=stage.value, file_path=unit_id(unit)))
                for unit in units
            ]
        )

        self.progress_tracker.complete_stage(f"Completed {stage.value}")
        return results

    async def execute_with_cache(
        self,
        key: str,
        operation: Operation[T],
        content: str | None = None,
    ) -> T:
        """Return a cached result for key, running operation on a miss."""
        return await self.cache_manager.get_or_compute(key, operation, content)

    async def execute_with_isolation(
        self, operation: Operation[T], context: OperationContext
    ) -> GenerationResult[T]:
        return await self.error_handler.execute_with_isolation(operation, context)

    async def execute_with_retry(
        self, operation: Operation[T], context: OperationContext
    ) -> GenerationResult[T]:
        return await self.error_handler.execute_with_retry(operation, context)

    async def execute_ai_with_fallback(
        self,
        primary: Operation[T],
        fallback: Operation[T],
        context: OperationContext,
    ) -> GenerationResult[T]:
        """Run an AI operation, degrading to a fallback only for non-recoverable failures.

        The primary operation is retried to exhaustion first. Recoverable
        final failures (rate limits, timeouts, network) are reported as
        failures and never replaced by fallback output.

        Args:
            primary: AI-backed operation.
            fallback: Deterministic substitute, run once without retry.
            context: Stage and file the operation belongs to.

        Returns:
            The primary result, the fallback result with a warning, or the
            primary failure.
        """
        result = await self.error_handler.execute_with_retry(primary, context)
        if result.success or result.error is None or result.error.recoverable:
            return result

        logger.warning(
            f"Primary generation failed for {context.file_path or context.stage}; using fallback"
        )
        fallback_result = await self.error_handler.execute_with_isolation(
            fallback,
            OperationContext(stage=f"{context.stage} (fallback)", file_path=context.file_path),
        )
        if fallback_result.success:
            return GenerationResult.ok(fallback_result.data, warnings=[FALLBACK_WARNING])
        return result

    async def fan_out_with_fallback(
        self,
        items: Sequence[U],
        primary_for: Callable[[U], Operation[T]],
        fallback_for: Callable[[U], Operation[T]],
        stage: GenerationStage,
        item_id: Callable[[U], str] = str,
        on_result: Callable[[U, GenerationResult[T]], None] | None = None,
    ) -> list[GenerationResult[T]]:
        """Run execute_ai_with_fallback concurrently over items.

        Args:
            items: Independent items to generate for.
            primary_for: Builds the primary operation for an item.
            fallback_for: Builds the fallback operation for an item.
            stage: Stage reported to the progress tracker.
            item_id: Identifier used in error contexts and progress messages.
            on_result: Called as each item finishes, before progress advances.

        Returns:
            One GenerationResult per item, in input order.
        """
        self.progress_tracker.start_stage(
            stage, len(items), f"Generating {len(items)} item(s)"
        )

        async def run(item: U) -> GenerationResult[T]:
            result = await self.execute_ai_with_fallback(
                primary_for(item),
                fallback_for(item),
                OperationContext(stage=stage.value, file_path=item_id(item)),
            )
            if on_result is not None:
                on_result(item, result)
            self.progress_tracker.increment_progress(f"Generated {item_id(item)}")
            return result

        results = list(await asyncio.gather(*(run(item) for item in items)))
        self.progress_tracker.complete_stage(f"Completed {stage.value}")
        return results

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_errors(self) -> list[GenerationError]:
        return self.error_handler.get_errors()

    def has_errors(self) -> bool:
        return self.error_handler.has_errors()

    def get_error_summary(self) -> str:
        return self.error_handler.get_error_summary()

    def get_cache_stats(self) -> CacheStats:
        return self.cache_manager.get_stats()

    def cleanup_cache(self) -> int:
        return self.cache_manager.cleanup()
