"""LLM-backed test case source, pytest rendering and test code validation."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from legacylens.pipeline import GenerationFailedError, ValidationIssue
from legacylens.testgen import (
    LLMTestCaseSource,
    Mock,
    PythonTestValidator,
    TestCase,
    TestCaseKind,
    estimate_coverage_improvement,
    render_pytest_module,
)
from legacylens.units import GenerationUnit, UnitKind, analyze_unit


@pytest.fixture
def llm():
    client = MagicMock()
    client.generate_with_json = AsyncMock()
    return client


@pytest.fixture
def source(llm):
    return LLMTestCaseSource(llm)


async def test_plan_covers_parameters_and_raises(source, sample_unit):
    plan = await source.plan(analyze_unit(sample_unit))

    assert plan.kinds == [TestCaseKind.HAPPY_PATH, TestCaseKind.EDGE_CASE, TestCaseKind.ERROR_CASE]
    assert plan.mock_targets == ["decimal"]


async def test_plan_for_simple_code_is_happy_path_only(source):
    unit = GenerationUnit(
        unit_id="u", name="version", kind=UnitKind.FUNCTION, file_path="pkg/meta.py",
        source="def version():\n    return '1.0'\n",
    )

    plan = await source.plan(analyze_unit(unit))

    assert plan.kinds == [TestCaseKind.HAPPY_PATH]
    assert plan.mock_targets == []


async def test_plan_for_other_languages_asks_for_every_kind(source):
    unit = GenerationUnit(
        unit_id="u", name="PAYROLL", kind=UnitKind.FILE, file_path="cobol/payroll.cbl",
        source="IDENTIFICATION DIVISION.", language="cobol",
    )

    plan = await source.plan(analyze_unit(unit))

    assert plan.kinds == [TestCaseKind.HAPPY_PATH, TestCaseKind.EDGE_CASE, TestCaseKind.ERROR_CASE]


async def test_generate_cases_parses_fenced_json(source, llm, sample_unit):
    payload = {"test_cases": [{"name": "Sums Amounts!", "inputs": [[1, 2], 0], "expected_output": 3}]}
    llm.generate_with_json.return_value = f"```json\n{json.dumps(payload)}\n```"

    cases = await source.generate_cases(TestCaseKind.HAPPY_PATH, analyze_unit(sample_unit))

    assert len(cases) == 1
    case = cases[0]
    assert case.name == "test_sums_amounts"
    assert case.kind == TestCaseKind.HAPPY_PATH
    assert case.inputs == [[1, 2], 0]
    assert case.expected_output == 3
    # File units default to their first callable
    assert case.target == "total"


async def test_generate_cases_rejects_malformed_json(source, llm, sample_unit):
    llm.generate_with_json.return_value = '{"cases": "nope"}'

    with pytest.raises(GenerationFailedError, match="invalid edge_case test cases"):
        await source.generate_cases(TestCaseKind.EDGE_CASE, analyze_unit(sample_unit))


async def test_fallback_skips_private_callables(source):
    unit = GenerationUnit(
        unit_id="u", name="helpers", kind=UnitKind.FILE, file_path="helpers.py",
        source="def _private(x):\n    return x\n\ndef public(x):\n    return x\n",
    )

    cases = await source.fallback_cases(TestCaseKind.HAPPY_PATH, analyze_unit(unit))

    assert [case.target for case in cases] == ["public"]
    assert cases[0].inputs == [None]


async def test_fallback_error_cases_need_a_raise(source):
    unit = GenerationUnit(
        unit_id="u", name="helpers", kind=UnitKind.FILE, file_path="helpers.py",
        source="def public(x):\n    return x\n",
    )

    assert await source.fallback_cases(TestCaseKind.ERROR_CASE, analyze_unit(unit)) == []


async def test_generate_mocks_one_per_dependency(source, sample_unit):
    plan = await source.plan(analyze_unit(sample_unit))

    mocks = await source.generate_mocks(plan)

    assert mocks == [Mock(target="decimal", mock_code='mock_decimal = MagicMock(name="decimal")')]


def test_render_pytest_module(sample_unit):
    cases = [
        TestCase("test_total_sums", "Sums amounts", TestCaseKind.HAPPY_PATH, [[1, 2], 0], 3, target="total"),
        TestCase("test_invoice_builds", "", TestCaseKind.HAPPY_PATH, ["A-1"], target="Invoice"),
        TestCase(
            "test_total_rejects_negative_tax", "", TestCaseKind.ERROR_CASE, [[1], -1],
            expected_error="ValueError", target="total",
        ),
    ]
    mocks = [Mock(target="os.path", mock_code='mock_os_path = MagicMock(name="os.path")')]

    code = render_pytest_module(sample_unit, cases, mocks)

    assert code.startswith('"""Generated tests for invoice."""\n\nimport pytest\n')
    assert "from unittest.mock import MagicMock" in code
    assert "from billing.invoice import Invoice, total" in code
    assert 'mock_os_path = MagicMock(name="os.path")' in code
    assert '    "Sums amounts"\n    assert total([1, 2], 0) == 3' in code
    assert "def test_invoice_builds():\n    Invoice('A-1')" in code
    assert "    with pytest.raises(Exception):\n        total([1], -1)" in code
    assert PythonTestValidator().validate(code).valid


def test_coverage_estimate_is_capped():
    assert estimate_coverage_improvement(0) == 0
    assert estimate_coverage_improvement(3) == 15
    assert estimate_coverage_improvement(40) == 95


class TestPythonTestValidator:
    def setup_method(self):
        self.validator = PythonTestValidator()

    def test_empty_code(self):
        result = self.validator.validate("  \n")

        assert not result.valid
        assert [e.message for e in result.errors] == ["Test code is empty"]

    def test_syntax_error_has_location(self):
        result = self.validator.validate("def test_x(:\n    pass\n")

        assert not result.valid
        error = result.errors[0]
        assert error.message.startswith("Syntax error: ")
        assert error.line == 1

    def test_no_test_functions(self):
        result = self.validator.validate("import pytest\n\ndef helper():\n    return 1\n")

        assert [e.message for e in result.errors] == ["No test functions found"]

    def test_missing_pytest_import(self):
        code = "def test_x():\n    with pytest.raises(ValueError):\n        int('x')\n"

        result = self.validator.validate(code)

        assert not result.valid
        assert result.errors == [ValidationIssue("Missing import: pytest", line=1)]

    def test_test_without_assertions_warns(self):
        code = 'def test_nothing():\n    """Only a docstring."""\n    x = 1\n'

        result = self.validator.validate(code)

        assert result.valid
        assert [w.message for w in result.warnings] == ["Test 'test_nothing' has no assertions"]
        assert result.warnings[0].line == 1

    def test_suggests_import_for_missing_import_only(self):
        errors = [ValidationIssue("Missing import: pytest", line=1), ValidationIssue("No test functions found")]

        fixes = self.validator.suggest_fixes(errors)

        assert len(fixes) == 1
        assert fixes[0].code == "import pytest"
        assert fixes[0].location.line == 1
