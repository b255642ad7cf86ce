"""Data models for test synthesis."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from legacylens.constants import COVERAGE_PER_TEST_CASE, MAX_COVERAGE_ESTIMATE, VALIDATION_MAX_RETRIES
from legacylens.pipeline import ArtifactStatus, ProgressEvent
from legacylens.units import UnitAnalysis


class TestCaseKind(Enum):
    """Category of a generated test case."""

    __test__ = False

    HAPPY_PATH = "happy_path"
    EDGE_CASE = "edge_case"
    ERROR_CASE = "error_case"


@dataclass
class TestCase:
    """A single generated test case."""

    __test__ = False

    name: str
    description: str
    kind: TestCaseKind
    inputs: list[Any] = field(default_factory=list)
    expected_output: Any = None
    expected_error: str | None = None
    target: str | None = None


@dataclass
class Mock:
    """Mock of one dependency of the unit under test."""

    target: str
    mock_code: str
    mock_library: str = "unittest.mock"
    setup_code: str = ""


@dataclass
class TestSuite:
    """A generated test suite for one unit."""

    __test__ = False

    id: str
    project_id: str
    target_file: str
    framework: str
    test_code: str
    test_cases: list[TestCase] = field(default_factory=list)
    mocks: list[Mock] = field(default_factory=list)
    coverage_improvement: int = 0
    status: ArtifactStatus = ArtifactStatus.GENERATED
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class TestGenerationOptions:
    """Options for one test generation job."""

    __test__ = False

    framework: str = "pytest"
    language: str = "python"
    max_retries: int = VALIDATION_MAX_RETRIES


@dataclass
class TestGenerationResult:
    """Outcome of a test generation job.

    A job with success=True may still carry warnings (degraded output).
    A failed job carries the partial suite when any test cases were completed.
    """

    __test__ = False

    success: bool
    test_suite: TestSuite | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    progress: list[ProgressEvent] = field(default_factory=list)


def estimate_coverage_improvement(test_case_count: int) -> int:
    """Rough coverage gain for a number of test cases, in percent."""
    return min(test_case_count * COVERAGE_PER_TEST_CASE, MAX_COVERAGE_ESTIMATE)


@dataclass
class TestPlan:
    """Which kinds of test cases to generate and which dependencies to mock."""

    __test__ = False

    analysis: UnitAnalysis
    kinds: list[TestCaseKind] = field(default_factory=list)
    mock_targets: list[str] = field(default_factory=list)
