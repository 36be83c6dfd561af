"""Run a test case in a sandbox and capture values at observation sites."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from pytest_smartseed.errors import ClassLoadFailure, MissingFitness
from pytest_smartseed.fitness import (
    BranchCoverageFactory,
    BranchCoverageTestFitness,
    search_relevant_fitness,
)
from pytest_smartseed.models import Branch, Instruction
from pytest_smartseed.sandbox import ExecutionSandbox
from pytest_smartseed.testcase import ArrayStatement, TestCase, TestChromosome

logger = logging.getLogger(__name__)


class ObservationContext:
    """Per-call buffer: one (initially empty) value sequence per observation site."""

    def __init__(self, sites: Iterable[Instruction]) -> None:
        self._buffer: dict[str, list[Any]] = {s.site_id: [] for s in sites}

    def record(self, site_id: str, value: Any) -> None:
        values = self._buffer.get(site_id)
        if values is not None:
            values.append(value)

    def snapshot(self) -> dict[str, list[Any]]:
        return {site_id: list(values) for site_id, values in self._buffer.items()}


def _module_of(type_name: str) -> str | None:
    if "[" in type_name:
        type_name = type_name[type_name.index("[") + 1:type_name.rindex("]")]
    if "." not in type_name:
        return None
    return type_name.rsplit(".", 1)[0]


class ObservationHarness:
    """Executes chromosomes against a branch goal and reports observed values.

    Calls must be serialized: the sandbox swaps modules in ``sys.modules``
    for the duration of each execution.
    """

    def __init__(self, fitness_factory: BranchCoverageFactory | None = None) -> None:
        self.fitness_factory = fitness_factory or BranchCoverageFactory()
        self.targets: set[str] = set()

    def register_targets(self, sites: Iterable[Instruction], test_case: TestCase) -> None:
        for site in sites:
            self.targets.add(site.module)
        for statement in test_case:
            type_name = (
                statement.element_type
                if isinstance(statement, ArrayStatement)
                else statement.type_name
            )
            module = _module_of(type_name)
            if module is not None:
                self.targets.add(module)

    def _relevant_fitness(self, branch: Branch, chromosome: TestChromosome) -> BranchCoverageTestFitness:
        fitness = search_relevant_fitness(branch, chromosome)
        if fitness is None:
            raise MissingFitness(f"no fitness attached for {branch}")
        return fitness

    def observe(
        self,
        branch: Branch,
        sites: list[Instruction],
        chromosome: TestChromosome,
    ) -> dict[str, list[Any]]:
        chromosome.add_fitness(self.fitness_factory.create(branch))
        self.register_targets(sites, chromosome.test_case)

        sandbox = ExecutionSandbox(sites, self.targets)
        for module_name in dict.fromkeys(s.module for s in sites):
            try:
                sandbox.load(module_name)
            except ClassLoadFailure as e:
                logger.warning("observation sites in %s stay empty: %s", module_name, e)

        context = ObservationContext(sites)
        sandbox.bind(context)
        try:
            chromosome.test_case.change_loader(sandbox)
            try:
                fitness = self._relevant_fitness(branch, chromosome)
            except MissingFitness as e:
                logger.warning("%s, skipping observation", e)
                return context.snapshot()
            chromosome.add_fitness(fitness)
            chromosome.clear_cached_results()
            fitness.get_fitness(chromosome)
        finally:
            sandbox.bind(None)

        return context.snapshot()
