"""Branch coverage fitness functions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from pytest_smartseed.configuration import config
from pytest_smartseed.executor import ExecutionResult, execute_test_case
from pytest_smartseed.models import Branch
from pytest_smartseed.testcase import TestChromosome


@dataclass(frozen=True)
class BranchCoverageTestFitness:
    """Distance of a test case from covering one branch outcome.

    0.0 when the branch's target line runs, 0.5 when only the decision is
    reached, 1.0 otherwise.
    """

    branch: Branch

    def _execute(self, chromosome: TestChromosome) -> ExecutionResult:
        test_case = chromosome.test_case
        file_path = test_case.loader.module_file(self.branch.module)
        return execute_test_case(
            test_case,
            target_files=[file_path] if file_path else [],
            timeout=config.execution_timeout_seconds,
        )

    def _score(self, result: ExecutionResult, chromosome: TestChromosome) -> float:
        file_path = chromosome.test_case.loader.module_file(self.branch.module)
        if file_path is None:
            return 1.0
        lines = result.lines_in(file_path)
        if self.branch.target_lineno is not None and self.branch.target_lineno in lines:
            return 0.0
        if self.branch.lineno in lines:
            return 0.5
        return 1.0

    def get_fitness(self, chromosome: TestChromosome) -> float:
        result = chromosome.last_execution_result
        if result is None or chromosome.changed:
            result = self._execute(chromosome)
            chromosome.last_execution_result = result
            chromosome.changed = False
        value = self._score(result, chromosome)
        chromosome.set_fitness(self, value)
        return value

    def is_covered(self, chromosome: TestChromosome) -> bool:
        return self.get_fitness(chromosome) == 0.0


class BranchCoverageFactory:
    """Create branch coverage goals."""

    def create(self, branch: Branch) -> BranchCoverageTestFitness:
        return BranchCoverageTestFitness(branch)

    def create_all(self, branches: Iterable[Branch]) -> list[BranchCoverageTestFitness]:
        return [self.create(b) for b in branches]


def search_relevant_fitness(
    branch: Branch, chromosome: TestChromosome
) -> BranchCoverageTestFitness | None:
    """The attached fitness function whose goal is ``branch``, if any."""
    for fitness in chromosome.fitness_values:
        if isinstance(fitness, BranchCoverageTestFitness) and fitness.branch == branch:
            return fitness
    return None
