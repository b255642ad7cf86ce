"""Failure isolation, retry and recoverability classification.

The ErrorHandler runs fallible async operations so that failures are
recorded and returned as values instead of propagating past the unit that
produced them.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Generic, Iterable, Sequence, TypeVar

from legacylens.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY_MS,
    RECOVERABLE_ERROR_PATTERNS,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]
RecoverablePredicate = Callable[[BaseException], bool]
SleepFn = Callable[[float], Awaitable[None]]


class PipelineError(Exception):
    """Base exception for generation pipeline errors."""

    pass


class PipelineStateError(PipelineError):
    """Raised when an orchestrator is reused across jobs without reset()."""

    pass


class AnalysisError(PipelineError):
    """Raised when a unit cannot be analyzed."""

    pass


class GenerationFailedError(PipelineError):
    """Raised when a job cannot produce any output."""

    pass


def make_recoverable_predicate(patterns: Iterable[str]) -> RecoverablePredicate:
    """Build a predicate that treats errors matching any pattern as recoverable.

    Args:
        patterns: Regular expressions, matched case-insensitively against str(error).

    Returns:
        Predicate suitable for ErrorHandler(is_recoverable=...).
    """
    compiled = [re.compile(p, re.IGNORECASE) for p in patterns]

    def is_recoverable(error: BaseException) -> bool:
        message = str(error)
        return any(regex.search(message) for regex in compiled)

    return is_recoverable


is_recoverable_error = make_recoverable_predicate(RECOVERABLE_ERROR_PATTERNS)
"""Default classifier: rate limits, timeouts and transient network failures."""


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to attempt an operation and how long to back off."""

    max_attempts: int = DEFAULT_MAX_RETRIES
    base_delay_ms: int = DEFAULT_RETRY_BASE_DELAY_MS

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be non-negative, got {self.base_delay_ms}")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given zero-based failed attempt."""
        return self.base_delay_ms * (2**attempt) / 1000


@dataclass(frozen=True)
class OperationContext:
    """Where an operation runs: the pipeline stage and, optionally, the unit's file."""

    stage: str
    file_path: str | None = None


@dataclass
class GenerationError:
    """A recorded failure of one operation."""

    stage: str
    error: Exception
    recoverable: bool
    file_path: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass
class GenerationResult(Generic[T]):
    """Outcome of an isolated operation: either data or an error, never both."""

    success: bool
    data: T | None = None
    error: GenerationError | None = None
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self):
        if self.success and self.error is not None:
            raise ValueError("A successful result cannot carry an error")
        if not self.success and self.data is not None:
            raise ValueError("A failed result cannot carry data")
        if not self.success and self.error is None:
            raise ValueError("A failed result must carry an error")

    @classmethod
    def ok(cls, data: T, warnings: list[str] | None = None) -> "GenerationResult[T]":
        return cls(success=True, data=data, warnings=list(warnings or []))

    @classmethod
    def failed(cls, error: GenerationError) -> "GenerationResult[T]":
        return cls(success=False, error=error)


class ErrorHandler:
    """Runs operations with isolation and retry, keeping a log of failures.

    The error log is append-only until clear_errors(); one handler must not
    be shared between unrelated jobs.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        is_recoverable: RecoverablePredicate = is_recoverable_error,
        sleep: SleepFn = asyncio.sleep,
    ):
        """Initialize the handler.

        Args:
            policy: Retry policy for execute_with_retry.
            is_recoverable: Classifier deciding whether an error is transient.
            sleep: Awaitable sleep used between retry attempts.
        """
        self.policy = policy or RetryPolicy()
        self.is_recoverable = is_recoverable
        self._sleep = sleep
        self._errors: list[GenerationError] = []

    async def execute_with_isolation(
        self, operation: Operation[T], context: OperationContext
    ) -> GenerationResult[T]:
        """Run an operation once; a failure is recorded and returned, never raised."""
        try:
            data = await operation()
        except Exception as e:
            return GenerationResult.failed(self._record(e, context))
        return GenerationResult.ok(data)

    async def execute_with_retry(
        self, operation: Operation[T], context: OperationContext
    ) -> GenerationResult[T]:
        """Run an operation up to policy.max_attempts times with exponential backoff.

        Every error is retried the same way regardless of classification.
        Only the final failure is recorded in the error log.
        """
        last_error: Exception | None = None

        for attempt in range(self.policy.max_attempts):
            try:
                data = await operation()
            except Exception as e:
                last_error = e
                if attempt < self.policy.max_attempts - 1:
                    delay = self.policy.delay_for(attempt)
                    logger.warning(
                        f"{_describe(context)} attempt {attempt + 1}/{self.policy.max_attempts} "
                        f"failed: {e}. Retrying in {delay:.2f}s"
                    )
                    await self._sleep(delay)
            else:
                return GenerationResult.ok(data)

        assert last_error is not None
        return GenerationResult.failed(self._record(last_error, context))

    async def execute_all_with_isolation(
        self, entries: Sequence[tuple[Operation[T], OperationContext]]
    ) -> list[GenerationResult[T]]:
        """Run operations concurrently, each isolated. Results keep input order."""
        return list(
            await asyncio.gather(
                *(self.execute_with_isolation(op, context) for op, context in entries)
            )
        )

    def get_errors(self) -> list[GenerationError]:
        """Get a copy of every recorded error."""
        return list(self._errors)

    def get_errors_for_file(self, file_path: str) -> list[GenerationError]:
        """Get errors recorded for one file."""
        return [e for e in self._errors if e.file_path == file_path]

    def get_error_count_by_stage(self) -> dict[str, int]:
        """Count recorded errors per stage."""
        counts: dict[str, int] = {}
        for error in self._errors:
            counts[error.stage] = counts.get(error.stage, 0) + 1
        return counts

    def get_error_summary(self) -> str:
        """Summarize recorded errors in one line."""
        if not self._errors:
            return "No errors occurred"

        by_stage = ", ".join(
            f"{stage}: {count}" for stage, count in self.get_error_count_by_stage().items()
        )
        return f"{len(self._errors)} error(s) occurred - {by_stage}"

    def has_errors(self) -> bool:
        return bool(self._errors)

    def clear_errors(self) -> None:
        self._errors.clear()

    def _record(self, error: Exception, context: OperationContext) -> GenerationError:
        generation_error = GenerationError(
            stage=context.stage,
            error=error,
            recoverable=self.is_recoverable(error),
            file_path=context.file_path,
        )
        self._errors.append(generation_error)
        logger.warning(
            f"{_describe(context)} failed "
            f"({'recoverable' if generation_error.recoverable else 'non-recoverable'}): {error}"
        )
        return generation_error


def _describe(context: OperationContext) -> str:
    if context.file_path:
        return f"[{context.stage}] {context.file_path}"
    return f"[{context.stage}]"
