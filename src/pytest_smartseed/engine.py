"""Dynamic sensitivity and value preservation analysis orchestrator."""

from __future__ import annotations

import logging
from typing import Iterable

from pytest_smartseed.analysis import (
    DependencyAnalysis,
    StaticDependencyTable,
    order_paths,
    parse_computation_paths,
)
from pytest_smartseed.branches import find_module_branches
from pytest_smartseed.configuration import config
from pytest_smartseed.errors import SeedTimeout
from pytest_smartseed.factory import TestFactory
from pytest_smartseed.inputs import construct_input_values
from pytest_smartseed.models import (
    Branch,
    ComputationPath,
    Instruction,
    ObservationRecord,
    RootVariable,
    TargetOperation,
    ValuePreservance,
)
from pytest_smartseed.observation import ObservationHarness
from pytest_smartseed.resolver import GraphToCodeMap
from pytest_smartseed.seeding import build_seed_calling_target, calls_target
from pytest_smartseed.synthesizer import ConstructionPathSynthesizer
from pytest_smartseed.testcase import TestChromosome

logger = logging.getLogger(__name__)


class SensitivityEngine:
    """Runs mutate-and-observe trials against one target operation.

    None of the ``analyze*`` methods raise for analysis failures; a seed
    timeout yields an empty ValuePreservance, unresolvable roots and
    unloadable sites just contribute nothing.
    """

    def __init__(
        self,
        target: TargetOperation,
        factory: TestFactory | None = None,
        analysis: DependencyAnalysis | None = None,
        synthesizer: ConstructionPathSynthesizer | None = None,
        harness: ObservationHarness | None = None,
        mutation_strategy: str | None = None,
    ) -> None:
        self.target = target
        self.factory = factory or TestFactory(target)
        self.analysis = analysis if analysis is not None else StaticDependencyTable()
        self.synthesizer = synthesizer or ConstructionPathSynthesizer(
            self.factory, self.analysis, target
        )
        self.harness = harness or ObservationHarness()
        self.mutation_strategy = mutation_strategy

    def build_seed(self) -> TestChromosome:
        test_case = build_seed_calling_target(
            self.factory,
            self.target,
            allow_null_inputs=config.allow_null_inputs,
            timeout=config.seed_timeout_seconds,
        )
        return TestChromosome(test_case)

    def prepare(self, seed: TestChromosome, branch: Branch) -> GraphToCodeMap:
        """Construct the difficult objects of ``branch`` into the seed."""
        try:
            self.synthesizer.construct_difficult_object_statement(seed.test_case, branch)
        except Exception as e:
            logger.warning("construction for %s failed, analyzing without it: %s", branch, e)
        return self.synthesizer.graph_to_code_map

    def check_preservance(
        self,
        branch: Branch,
        seed: TestChromosome,
        root_variables: list[RootVariable],
        observations: list[Instruction],
        graph_to_code: GraphToCodeMap,
        trials: int,
    ) -> ValuePreservance:
        preservance = ValuePreservance(observations, root_variables, branch=branch)
        for trial in range(trials):
            chromosome = seed.clone()
            inputs = construct_input_values(
                root_variables, chromosome.test_case, graph_to_code, self.target
            )
            inputs.mutate(self.mutation_strategy)
            observed = self.harness.observe(branch, observations, chromosome)
            preservance.add_record(ObservationRecord(inputs.snapshot(), observed))
            logger.debug("trial %d of %s: inputs %r observed %r", trial, branch, inputs, observed)
        return preservance

    def analyze(
        self,
        branch: Branch,
        root_variables: Iterable[RootVariable],
        observations: Iterable[Instruction],
        seed: TestChromosome | None = None,
        trials: int | None = None,
    ) -> ValuePreservance:
        root_variables = list(root_variables)
        observations = list(observations)
        if trials is None:
            trials = config.dynamic_sensitivity_threshold

        if seed is not None and calls_target(seed.test_case, self.target):
            seed = seed.clone()
        else:
            if seed is not None:
                logger.debug("supplied seed does not call %s, building one", self.target.signature)
            try:
                seed = self.build_seed()
            except SeedTimeout as e:
                logger.warning("no seed for %s: %s", self.target.signature, e)
                return ValuePreservance(observations, root_variables, branch=branch)

        graph_to_code = self.prepare(seed, branch)
        preservance = self.check_preservance(
            branch, seed, root_variables, observations, graph_to_code, trials
        )
        logger.info(
            "%s: sensitivity %.2f, value preservation %.2f over %d trials",
            branch,
            preservance.sensitivity_ratio,
            preservance.value_preservation_ratio,
            preservance.trials,
        )
        return preservance

    def analyze_path(
        self,
        path: ComputationPath,
        seed: TestChromosome | None = None,
        trials: int | None = None,
    ) -> ValuePreservance:
        """Probe the root of ``path`` against its tail instruction."""
        return self.analyze(path.branch, [path.root], [path.tail], seed=seed, trials=trials)

    def analyze_branch(
        self, branch: Branch, path0: ComputationPath | None = None
    ) -> list[ValuePreservance]:
        """Probe every computation path of ``branch``, field-rooted paths first.

        ``path0`` replaces path discovery when given. All paths share one seed.
        """
        if path0 is not None:
            paths = [path0]
        else:
            paths = order_paths(parse_computation_paths(self.analysis, branch))
        if not paths:
            return []

        try:
            seed = self.build_seed()
        except SeedTimeout as e:
            logger.warning("no seed for %s: %s", self.target.signature, e)
            return [
                ValuePreservance([p.tail], [p.root], branch=branch) for p in paths
            ]
        return [self.analyze_path(path, seed=seed) for path in paths]

    def target_branches(self) -> list[Branch]:
        """Decision outcomes of the target, then other branches the analysis knows."""
        try:
            found = find_module_branches(self.target.module)
        except (ImportError, OSError, SyntaxError) as e:
            logger.warning("cannot read branches of %s: %s", self.target.module, e)
            found = []
        branches = [b for b in found if b.qualname == self.target.qualname]
        for branch in self.analysis.branches():
            if branch not in branches:
                branches.append(branch)
        return branches

    def analyze_all(self) -> dict[Branch, list[ValuePreservance]]:
        """analyze_branch for every branch in ``target_branches``."""
        return {branch: self.analyze_branch(branch) for branch in self.target_branches()}
