"""Test synthesis built on the resilient generation pipeline."""

from legacylens.testgen.models import (
    Mock,
    TestCase,
    TestCaseKind,
    TestGenerationOptions,
    TestGenerationResult,
    TestPlan,
    TestSuite,
    estimate_coverage_improvement,
)
from legacylens.testgen.orchestrator import TestGenerationOrchestrator
from legacylens.testgen.sources import (
    LLMTestCaseSource,
    PythonTestValidator,
    TestCaseSource,
    render_pytest_module,
)

__all__ = [
    "LLMTestCaseSource",
    "Mock",
    "PythonTestValidator",
    "TestCase",
    "TestCaseKind",
    "TestCaseSource",
    "TestGenerationOptions",
    "TestGenerationOrchestrator",
    "TestGenerationResult",
    "TestPlan",
    "TestSuite",
    "estimate_coverage_improvement",
    "render_pytest_module",
]
