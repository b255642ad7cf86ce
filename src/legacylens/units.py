"""Units of legacy code and the static facts extracted from them."""

import ast
from dataclasses import dataclass, field
from enum import Enum

from legacylens.pipeline import AnalysisError


class UnitKind(Enum):
    """Granularity of a unit of legacy code."""

    FILE = "file"
    FUNCTION = "function"
    CLASS = "class"


@dataclass
class GenerationUnit:
    """A piece of source code that tests or documentation are generated for.

    Attributes:
        unit_id: Stable identifier, unique within a job.
        name: Function, class or module name.
        kind: Granularity of the unit.
        file_path: Path of the file the unit lives in.
        source: Source text of the unit.
        language: Language of the source text.
    """

    unit_id: str
    name: str
    kind: UnitKind
    file_path: str
    source: str
    language: str = "python"


@dataclass
class UnitAnalysis:
    """Static facts about a unit.

    Attributes:
        unit: The analyzed unit.
        callables: Names of the top-level functions and classes the unit defines.
        parameters: Parameter names per callable (a class reports its __init__).
        dependencies: Modules the unit imports.
        raises: Exception names the unit raises explicitly.
        docstrings: Docstring per callable or class, where present.
    """

    unit: GenerationUnit
    callables: list[str] = field(default_factory=list)
    parameters: dict[str, list[str]] = field(default_factory=dict)
    dependencies: list[str] = field(default_factory=list)
    raises: list[str] = field(default_factory=list)
    docstrings: dict[str, str] = field(default_factory=dict)


def analyze_unit(unit: GenerationUnit) -> UnitAnalysis:
    """Extract callables, imports and raised exceptions from a unit.

    Only Python source is inspected; units in other languages get an
    analysis carrying nothing but the unit itself.

    Raises:
        AnalysisError: If Python source does not parse.
    """
    analysis = UnitAnalysis(unit=unit)
    if unit.language.lower() != "python":
        return analysis

    try:
        tree = ast.parse(unit.source, filename=unit.file_path)
    except SyntaxError as e:
        raise AnalysisError(f"Cannot analyze {unit.file_path}: syntax error: {e}") from e

    if module_doc := ast.get_docstring(tree):
        analysis.docstrings[unit.name] = module_doc

    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            analysis.callables.append(node.name)
            analysis.parameters[node.name] = _parameter_names(node)
        elif isinstance(node, ast.ClassDef):
            analysis.callables.append(node.name)
            init = next(
                (
                    item
                    for item in node.body
                    if isinstance(item, ast.FunctionDef) and item.name == "__init__"
                ),
                None,
            )
            analysis.parameters[node.name] = _parameter_names(init) if init else []

    for node in ast.walk(tree):
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            if doc := ast.get_docstring(node):
                analysis.docstrings[node.name] = doc
        elif isinstance(node, ast.Import):
            analysis.dependencies.extend(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            analysis.dependencies.append(node.module)
        elif isinstance(node, ast.Raise) and node.exc is not None:
            exc = node.exc.func if isinstance(node.exc, ast.Call) else node.exc
            if isinstance(exc, ast.Name) and exc.id not in analysis.raises:
                analysis.raises.append(exc.id)

    analysis.dependencies = list(dict.fromkeys(analysis.dependencies))
    return analysis


def _parameter_names(node: ast.FunctionDef | ast.AsyncFunctionDef) -> list[str]:
    return [arg.arg for arg in node.args.args if arg.arg not in ("self", "cls")]


def module_path(file_path: str) -> str:
    """Dotted import path for a source file path."""
    path = file_path.replace("\\", "/")
    if path.endswith(".py"):
        path = path[:-3]
    if path.endswith("/__init__"):
        path = path[: -len("/__init__")]
    return path.strip("/").replace("/", ".")
