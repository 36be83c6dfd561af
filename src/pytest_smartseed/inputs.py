"""The mutation unit of one trial: resolved primitive inputs and constants."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from pytest_smartseed import randomness
from pytest_smartseed.errors import ResolutionFailure
from pytest_smartseed.models import ConstantValue, InputSnapshot, RootVariable, TargetOperation
from pytest_smartseed.resolver import GraphToCodeMap, constant_value, resolve
from pytest_smartseed.testcase import (
    ArrayIndex,
    ArrayStatement,
    AssignmentStatement,
    PrimitiveStatement,
    TestCase,
)

logger = logging.getLogger(__name__)


class MethodInputs:
    """Primitive statements open to mutation plus constants that never change.

    ``input_variables`` is keyed by statement position, ``input_constants``
    by instruction site id.
    """

    def __init__(
        self,
        input_variables: dict[int, PrimitiveStatement] | None = None,
        input_constants: dict[str, Any] | None = None,
    ) -> None:
        self.input_variables = dict(input_variables or {})
        self.input_constants = dict(input_constants or {})
        self.mutated_position: int | None = None
        self.previous_value: Any = None

    def mutate(self, strategy: str | None = None) -> int | None:
        """Change the value of one primitive chosen uniformly at random.

        Returns its position, or None when there is nothing to mutate.
        """
        if not self.input_variables:
            return None
        position = randomness.choice(sorted(self.input_variables))
        statement = self.input_variables[position]
        self.previous_value = statement.value
        statement.mutate(strategy)
        self.mutated_position = position
        return position

    def snapshot(self) -> InputSnapshot:
        return InputSnapshot(
            values={p: s.value for p, s in self.input_variables.items()},
            constants=dict(self.input_constants),
            mutated_position=self.mutated_position,
            previous_value=self.previous_value,
        )

    def __repr__(self) -> str:
        return f"MethodInputs({self.input_variables!r}, {self.input_constants!r})"


def relevant_array_elements(test_case: TestCase, array_position: int) -> list[int]:
    """Positions of the primitives assigned into the array defined at ``array_position``."""
    positions = []
    for statement in test_case.statements[array_position + 1:]:
        if (
            isinstance(statement, AssignmentStatement)
            and isinstance(statement.lhs, ArrayIndex)
            and statement.lhs.array.position == array_position
        ):
            value_position = statement.value.position
            if isinstance(test_case[value_position], PrimitiveStatement):
                positions.append(value_position)
    return positions


def _primitive_positions(test_case: TestCase, position: int) -> list[int]:
    statement = test_case[position]
    if isinstance(statement, PrimitiveStatement):
        return [position]
    if isinstance(statement, ArrayStatement):
        return relevant_array_elements(test_case, position)
    return []


def construct_input_values(
    roots: Iterable[RootVariable],
    test_case: TestCase,
    graph_to_code: GraphToCodeMap,
    target: TargetOperation | None = None,
) -> MethodInputs:
    """Collect the primitive statements and constants realizing ``roots``."""
    variables: dict[int, PrimitiveStatement] = {}
    constants: dict[str, Any] = {}

    for root in roots:
        if root.is_constant:
            try:
                constants[root.instruction.site_id] = constant_value(root.instruction)
            except ResolutionFailure as e:
                logger.debug("skipping constant %s: %s", root.instruction, e)
            continue

        positions: list[int] = []
        for var in root.all_children_including_itself():
            for ref in graph_to_code.get(var, []):
                positions.extend(_primitive_positions(test_case, ref.position))

        if not positions:
            try:
                resolved = resolve(root, test_case, graph_to_code, target)
            except ResolutionFailure as e:
                logger.debug("skipping %s: %s", root.name or root.instruction, e)
                continue
            if isinstance(resolved, ConstantValue):
                constants[resolved.instruction.site_id] = resolved.value
                continue
            positions = _primitive_positions(test_case, test_case.position_of(resolved))

        for position in positions:
            statement = test_case[position]
            if isinstance(statement, PrimitiveStatement) and statement.value is not None:
                variables.setdefault(position, statement)

    return MethodInputs(variables, constants)
