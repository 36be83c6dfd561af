"""Static dependency information consumed by the sensitivity engine."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Protocol

from pytest_smartseed.models import Branch, ComputationPath, RootVariable


class DependencyAnalysis(Protocol):
    """What the engine needs from an interprocedural dependency analysis."""

    def branches(self) -> list[Branch]: ...

    def root_variables(self, branch: Branch) -> list[RootVariable]: ...

    def computation_paths(self, root: RootVariable, branch: Branch) -> list[ComputationPath]: ...


class StaticDependencyTable:
    """In-memory dependency analysis results, filled in by the caller."""

    def __init__(self) -> None:
        self._roots: dict[Branch, list[RootVariable]] = defaultdict(list)
        self._paths: dict[tuple[RootVariable, Branch], list[ComputationPath]] = defaultdict(list)

    def add_root(self, branch: Branch, root: RootVariable) -> None:
        if root not in self._roots[branch]:
            self._roots[branch].append(root)

    def add_path(self, path: ComputationPath) -> None:
        self.add_root(path.branch, path.root)
        paths = self._paths[(path.root, path.branch)]
        if path not in paths:
            paths.append(path)

    def branches(self) -> list[Branch]:
        return list(self._roots)

    def root_variables(self, branch: Branch) -> list[RootVariable]:
        return list(self._roots.get(branch, []))

    def computation_paths(self, root: RootVariable, branch: Branch) -> list[ComputationPath]:
        return list(self._paths.get((root, branch), []))


def parse_computation_paths(
    analysis: DependencyAnalysis, branch: Branch
) -> list[ComputationPath]:
    """Every path reaching ``branch``, deduplicated by structural equality."""
    result: list[ComputationPath] = []
    for root in analysis.root_variables(branch):
        for path in analysis.computation_paths(root, branch):
            if path not in result:
                result.append(path)
    return result


def order_paths(paths: Iterable[ComputationPath]) -> list[ComputationPath]:
    """Field-rooted paths first; relative order is kept within each group."""
    paths = list(paths)
    return [p for p in paths if p.root.is_field] + [p for p in paths if not p.root.is_field]
