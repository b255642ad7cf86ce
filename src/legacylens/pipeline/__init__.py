"""Resilient generation pipeline shared by test and documentation synthesis."""

from legacylens.pipeline.cache import CacheEntry, CacheManager, CacheStats, compute_content_hash
from legacylens.pipeline.errors import (
    AnalysisError,
    ErrorHandler,
    GenerationError,
    GenerationFailedError,
    GenerationResult,
    OperationContext,
    PipelineError,
    PipelineStateError,
    RetryPolicy,
    is_recoverable_error,
    make_recoverable_predicate,
)
from legacylens.pipeline.orchestrator import ResilientOrchestrator
from legacylens.pipeline.partial import PartialResult, PartialResultManager
from legacylens.pipeline.progress import (
    GenerationStage,
    ProgressCallback,
    ProgressEvent,
    ProgressTracker,
)
from legacylens.pipeline.validation import (
    ArtifactStatus,
    Fix,
    FixLocation,
    FixLoopOutcome,
    ValidationIssue,
    ValidationResult,
    Validator,
    apply_fixes,
    validate_and_fix,
)

__all__ = [
    # Cache
    "CacheEntry",
    "CacheManager",
    "CacheStats",
    "compute_content_hash",
    # Errors
    "AnalysisError",
    "ErrorHandler",
    "GenerationError",
    "GenerationFailedError",
    "GenerationResult",
    "OperationContext",
    "PipelineError",
    "PipelineStateError",
    "RetryPolicy",
    "is_recoverable_error",
    "make_recoverable_predicate",
    # Orchestrator
    "ResilientOrchestrator",
    # Partial results
    "PartialResult",
    "PartialResultManager",
    # Progress
    "GenerationStage",
    "ProgressCallback",
    "ProgressEvent",
    "ProgressTracker",
    # Validation
    "ArtifactStatus",
    "Fix",
    "FixLocation",
    "FixLoopOutcome",
    "ValidationIssue",
    "ValidationResult",
    "Validator",
    "apply_fixes",
    "validate_and_fix",
]
