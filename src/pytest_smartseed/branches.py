"""Branch discovery: enumerate the decision points of a module."""

from __future__ import annotations

import ast
import importlib.util
from pathlib import Path

from pytest_smartseed.models import Branch


class _BranchCollector(ast.NodeVisitor):
    """Walk an AST and collect a true and a false Branch per if/while."""

    def __init__(self, module_name: str) -> None:
        self.module_name = module_name
        self.branches: list[Branch] = []
        self._scope: list[str] = []

    def _qualname(self) -> str:
        return ".".join(self._scope) or "<module>"

    def _visit_scope(self, node: ast.AST) -> None:
        self._scope.append(node.name)  # type: ignore[attr-defined]
        self.generic_visit(node)
        self._scope.pop()

    visit_FunctionDef = _visit_scope
    visit_AsyncFunctionDef = _visit_scope
    visit_ClassDef = _visit_scope

    def generic_visit(self, node: ast.AST) -> None:
        for _, value in ast.iter_fields(node):
            if isinstance(value, list):
                for i, item in enumerate(value):
                    if isinstance(item, (ast.If, ast.While)):
                        following = value[i + 1] if i + 1 < len(value) else None
                        self._add(item, following)
                    if isinstance(item, ast.AST):
                        self.visit(item)
            elif isinstance(value, ast.AST):
                self.visit(value)

    def _add(self, node: ast.If | ast.While, following: ast.AST | None) -> None:
        qualname = self._qualname()
        self.branches.append(
            Branch(self.module_name, qualname, node.lineno, node.body[0].lineno, True)
        )
        if node.orelse:
            false_target: int | None = node.orelse[0].lineno
        else:
            false_target = getattr(following, "lineno", None)
        self.branches.append(
            Branch(self.module_name, qualname, node.lineno, false_target, False)
        )


def find_branches(source: str, module_name: str) -> list[Branch]:
    """Parse source code and find every branch outcome, in source order."""
    tree = ast.parse(source)
    collector = _BranchCollector(module_name)
    collector.visit(tree)
    return collector.branches


def find_module_branches(module_name: str) -> list[Branch]:
    """Convenience: locate an importable module's source and find its branches."""
    spec = importlib.util.find_spec(module_name)
    if spec is None or spec.origin is None:
        raise ImportError(f"no source for {module_name}")
    return find_branches(Path(spec.origin).read_text(), module_name)
