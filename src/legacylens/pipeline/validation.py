"""Validation of generated artifacts with a bounded auto-fix loop."""

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Protocol

logger = logging.getLogger(__name__)


class ArtifactStatus(Enum):
    """Final status of a generated artifact."""

    GENERATED = "generated"
    VALIDATED = "validated"
    FAILED = "failed"


@dataclass
class ValidationIssue:
    """A validation error or warning, optionally tied to a 1-based line."""

    message: str
    line: int | None = None
    column: int | None = None


@dataclass
class ValidationResult:
    """Result of validating an artifact.

    Attributes:
        valid: True if no errors were found.
        errors: Problems that make the artifact invalid.
        warnings: Problems worth reporting that do not invalidate it.
    """

    valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)


@dataclass(frozen=True)
class FixLocation:
    line: int
    column: int = 0


@dataclass
class Fix:
    """Text to insert before a 1-based line of the artifact."""

    description: str
    code: str
    location: FixLocation | None = None


class Validator(Protocol):
    """Validates artifacts and proposes line-addressed fixes for their errors."""

    def validate(self, artifact: str) -> ValidationResult | Awaitable[ValidationResult]: ...

    def suggest_fixes(self, errors: list[ValidationIssue]) -> list[Fix]: ...


@dataclass
class FixLoopOutcome:
    """Best artifact produced by validate_and_fix and how it got there.

    Attributes:
        valid: True if the final artifact passed validation.
        artifact: The final (possibly fixed) artifact text.
        attempts: Number of validation passes run.
        fixes_applied: Total fixes inserted across all passes.
        errors: Errors from the last validation pass.
        warnings: Warnings from the last validation pass.
        notes: One entry per pass that applied fixes.
    """

    valid: bool
    artifact: str
    attempts: int = 0
    fixes_applied: int = 0
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def status(self) -> ArtifactStatus:
        return ArtifactStatus.VALIDATED if self.valid else ArtifactStatus.GENERATED


def apply_fixes(text: str, fixes: list[Fix]) -> str:
    """Insert fix code before each fix's 1-based line.

    Fixes are applied from the highest line number down, so an insertion
    never shifts the line another pending fix refers to. Fixes without a
    location or code, or with an out-of-range line, are skipped.
    """
    return _insert_fixes(text, fixes)[0]


def _insert_fixes(text: str, fixes: list[Fix]) -> tuple[str, int]:
    located = [fix for fix in fixes if fix.location is not None and fix.code]
    located.sort(key=lambda fix: fix.location.line, reverse=True)  # type: ignore[union-attr]

    lines = text.split("\n")
    inserted = 0
    for fix in located:
        index = fix.location.line - 1  # type: ignore[union-attr]
        if 0 <= index < len(lines):
            lines.insert(index, fix.code)
            inserted += 1
    return "\n".join(lines), inserted


async def _run_validation(validator: Validator, artifact: str) -> ValidationResult:
    result = validator.validate(artifact)
    if inspect.isawaitable(result):
        result = await result
    return result


async def validate_and_fix(
    artifact: str,
    validator: Validator,
    max_retries: int,
) -> FixLoopOutcome:
    """Validate an artifact, applying suggested fixes until valid or out of retries.

    Args:
        artifact: Generated artifact text.
        validator: Validator supplying checks and fixes.
        max_retries: Maximum number of validation passes.

    Returns:
        FixLoopOutcome with the best artifact produced.
    """
    outcome = FixLoopOutcome(valid=False, artifact=artifact)

    for attempt in range(max_retries):
        result = await _run_validation(validator, outcome.artifact)
        outcome.attempts = attempt + 1
        outcome.errors = list(result.errors)
        outcome.warnings = list(result.warnings)

        if result.valid:
            outcome.valid = True
            return outcome

        if attempt == max_retries - 1:
            break

        fixed, inserted = _insert_fixes(outcome.artifact, validator.suggest_fixes(result.errors))
        if not inserted:
            logger.info(f"No applicable fixes for {len(result.errors)} validation error(s)")
            break

        outcome.artifact = fixed
        outcome.fixes_applied += inserted
        outcome.notes.append(f"Applied {inserted} automatic fixes on attempt {attempt + 1}")
        logger.info(outcome.notes[-1])

    return outcome
