"""Collaborators that turn unit analyses into test code.

The orchestrator depends only on the TestCaseSource protocol. The default
implementation asks an LLM for test cases and falls back to templates
derived from the static analysis; PythonTestValidator checks the rendered
pytest module.
"""

import ast
import json
import logging
from typing import Any, Protocol

from pydantic import BaseModel, Field, ValidationError

from legacylens.llm import LLMClient
from legacylens.pipeline import Fix, FixLocation, GenerationFailedError, ValidationIssue, ValidationResult
from legacylens.testgen.models import (
    Mock,
    TestCase,
    TestCaseKind,
    TestGenerationOptions,
    TestPlan,
)
from legacylens.units import GenerationUnit, UnitAnalysis, UnitKind, analyze_unit, module_path

logger = logging.getLogger(__name__)


class TestCaseSource(Protocol):
    """Produces every intermediate artifact of a test generation job."""

    __test__ = False

    async def analyze(self, unit: GenerationUnit) -> UnitAnalysis: ...

    async def plan(self, analysis: UnitAnalysis) -> TestPlan: ...

    async def generate_cases(self, kind: TestCaseKind, analysis: UnitAnalysis) -> list[TestCase]: ...

    async def fallback_cases(self, kind: TestCaseKind, analysis: UnitAnalysis) -> list[TestCase]: ...

    async def generate_mocks(self, plan: TestPlan) -> list[Mock]: ...

    async def write_suite(
        self,
        unit: GenerationUnit,
        cases: list[TestCase],
        mocks: list[Mock],
        options: TestGenerationOptions,
    ) -> str: ...


SYSTEM_PROMPT = (
    "You write unit tests for legacy code. Given a unit of source code, "
    "propose concrete test cases as JSON."
)

KIND_INSTRUCTIONS = {
    TestCaseKind.HAPPY_PATH: "typical inputs that exercise the main behavior",
    TestCaseKind.EDGE_CASE: "boundary values, empty inputs and unusual but valid inputs",
    TestCaseKind.ERROR_CASE: "invalid inputs that must raise an exception",
}


class _TestCasePayload(BaseModel):
    name: str
    description: str = ""
    target: str | None = None
    inputs: list[Any] = Field(default_factory=list)
    expected_output: Any = None
    expected_error: str | None = None


class _TestCaseListPayload(BaseModel):
    test_cases: list[_TestCasePayload]


def _strip_code_fence(response: str) -> str:
    response = response.strip()
    if response.startswith("```json"):
        response = response[7:]
    if response.startswith("```"):
        response = response[3:]
    if response.endswith("```"):
        response = response[:-3]
    return response.strip()


def _test_name(name: str) -> str:
    cleaned = "".join(c if c.isalnum() or c == "_" else "_" for c in name.lower()).strip("_")
    if not cleaned.startswith("test_"):
        cleaned = f"test_{cleaned}"
    return cleaned


class LLMTestCaseSource:
    """TestCaseSource backed by an LLM, with template fallbacks."""

    def __init__(self, llm_client: LLMClient):
        self.llm_client = llm_client

    async def analyze(self, unit: GenerationUnit) -> UnitAnalysis:
        return analyze_unit(unit)

    async def plan(self, analysis: UnitAnalysis) -> TestPlan:
        """Plan happy path tests always, edge cases for parameterized code, error cases for raising code."""
        kinds = [TestCaseKind.HAPPY_PATH]
        if any(analysis.parameters.values()) or analysis.unit.language.lower() != "python":
            kinds.append(TestCaseKind.EDGE_CASE)
        if analysis.raises or analysis.unit.language.lower() != "python":
            kinds.append(TestCaseKind.ERROR_CASE)
        return TestPlan(analysis=analysis, kinds=kinds, mock_targets=list(analysis.dependencies))

    async def generate_cases(self, kind: TestCaseKind, analysis: UnitAnalysis) -> list[TestCase]:
        """Ask the LLM for test cases of one kind.

        Raises:
            LLMError: If the provider call fails.
            GenerationFailedError: If the response is not valid test case JSON.
        """
        unit = analysis.unit
        prompt = (
            f"Unit: {unit.name} ({unit.kind.value}) in {unit.file_path}\n"
            f"Language: {unit.language}\n"
            f"Callables: {', '.join(analysis.callables) or 'none detected'}\n\n"
            f"```\n{unit.source}\n```\n\n"
            f"Write {kind.value.replace('_', ' ')} tests: {KIND_INSTRUCTIONS[kind]}.\n"
            'Respond as {"test_cases": [{"name": str, "description": str, "target": str, '
            '"inputs": list, "expected_output": any, "expected_error": str | null}]}'
        )
        response = await self.llm_client.generate_with_json(prompt, system_prompt=SYSTEM_PROMPT)

        try:
            payload = _TestCaseListPayload.model_validate_json(_strip_code_fence(response))
        except ValidationError as e:
            raise GenerationFailedError(
                f"LLM returned invalid {kind.value} test cases for {unit.name}: {e}"
            ) from e

        return [
            TestCase(
                name=_test_name(case.name),
                description=case.description,
                kind=kind,
                inputs=case.inputs,
                expected_output=case.expected_output,
                expected_error=case.expected_error,
                target=case.target or _default_target(analysis),
            )
            for case in payload.test_cases
        ]

    async def fallback_cases(self, kind: TestCaseKind, analysis: UnitAnalysis) -> list[TestCase]:
        """Build one template test case per callable for the given kind."""
        targets = analysis.callables or [analysis.unit.name]
        cases = []
        for target in targets:
            if target.startswith("_"):
                continue
            params = analysis.parameters.get(target, [])
            if kind == TestCaseKind.HAPPY_PATH:
                cases.append(
                    TestCase(
                        name=_test_name(f"{target}_runs"),
                        description=f"{target} runs with placeholder arguments",
                        kind=kind,
                        inputs=[None] * len(params),
                        target=target,
                    )
                )
            elif kind == TestCaseKind.EDGE_CASE and params:
                cases.append(
                    TestCase(
                        name=_test_name(f"{target}_with_empty_inputs"),
                        description=f"{target} handles empty inputs",
                        kind=kind,
                        inputs=[""] * len(params),
                        target=target,
                    )
                )
            elif kind == TestCaseKind.ERROR_CASE and analysis.raises:
                cases.append(
                    TestCase(
                        name=_test_name(f"{target}_raises"),
                        description=f"{target} raises {analysis.raises[0]} on invalid input",
                        kind=kind,
                        inputs=[None] * len(params),
                        expected_error=analysis.raises[0],
                        target=target,
                    )
                )
        logger.debug(f"Built {len(cases)} {kind.value} template case(s) for {analysis.unit.name}")
        return cases

    async def generate_mocks(self, plan: TestPlan) -> list[Mock]:
        return [
            Mock(
                target=target,
                mock_code=f'mock_{target.replace(".", "_")} = MagicMock(name="{target}")',
            )
            for target in plan.mock_targets
        ]

    async def write_suite(
        self,
        unit: GenerationUnit,
        cases: list[TestCase],
        mocks: list[Mock],
        options: TestGenerationOptions,
    ) -> str:
        return render_pytest_module(unit, cases, mocks)


def _default_target(analysis: UnitAnalysis) -> str:
    if analysis.unit.kind != UnitKind.FILE or not analysis.callables:
        return analysis.unit.name
    return analysis.callables[0]


def render_pytest_module(unit: GenerationUnit, cases: list[TestCase], mocks: list[Mock]) -> str:
    """Render test cases as a pytest module importing the unit under test."""
    module = module_path(unit.file_path)
    targets = sorted({case.target for case in cases if case.target})

    lines = ['"""Generated tests for ' + unit.name + '."""', "", "import pytest"]
    if mocks:
        lines.append("from unittest.mock import MagicMock")
    if targets:
        lines.extend(["", f"from {module} import {', '.join(targets)}"])
    if mocks:
        lines.append("")
        lines.extend(mock.mock_code for mock in mocks)

    for case in cases:
        call = f"{case.target or unit.name}({', '.join(repr(arg) for arg in case.inputs)})"
        lines.extend(["", "", f"def {case.name}():"])
        if case.description:
            lines.append(f"    {json.dumps(case.description)}")
        if case.kind == TestCaseKind.ERROR_CASE or case.expected_error:
            lines.append("    with pytest.raises(Exception):")
            lines.append(f"        {call}")
        elif case.expected_output is not None:
            lines.append(f"    assert {call} == {case.expected_output!r}")
        else:
            lines.append(f"    {call}")

    return "\n".join(lines) + "\n"


class PythonTestValidator:
    """Validates generated pytest modules."""

    def validate(self, test_code: str) -> ValidationResult:
        """Check that test code is non-empty, parses, defines tests and imports pytest.

        Args:
            test_code: Generated pytest module.

        Returns:
            ValidationResult with errors and warnings tied to 1-based lines.
        """
        if not test_code.strip():
            return ValidationResult(valid=False, errors=[ValidationIssue("Test code is empty")])

        try:
            tree = ast.parse(test_code)
        except SyntaxError as e:
            return ValidationResult(
                valid=False,
                errors=[ValidationIssue(f"Syntax error: {e.msg}", line=e.lineno, column=e.offset)],
            )

        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        tests = [
            node
            for node in ast.walk(tree)
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))
            and node.name.startswith("test_")
        ]
        if not tests:
            errors.append(ValidationIssue("No test functions found"))

        imported = set()
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                imported.update(alias.asname or alias.name for alias in node.names)
        uses_pytest = any(
            isinstance(node, ast.Name) and node.id == "pytest" for node in ast.walk(tree)
        )
        if uses_pytest and "pytest" not in imported:
            errors.append(ValidationIssue("Missing import: pytest", line=1))

        for test in tests:
            has_check = any(
                isinstance(node, (ast.Assert, ast.With, ast.AsyncWith))
                or (isinstance(node, ast.Expr) and isinstance(node.value, (ast.Call, ast.Await)))
                for node in ast.walk(test)
            )
            if not has_check:
                warnings.append(
                    ValidationIssue(f"Test '{test.name}' has no assertions", line=test.lineno)
                )

        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    def suggest_fixes(self, errors: list[ValidationIssue]) -> list[Fix]:
        """Propose an import line for every missing-import error."""
        fixes = []
        for error in errors:
            if error.message.startswith("Missing import: "):
                module = error.message.removeprefix("Missing import: ")
                fixes.append(
                    Fix(
                        description=f"Add import for {module}",
                        code=f"import {module}",
                        location=FixLocation(line=1),
                    )
                )
        return fixes
