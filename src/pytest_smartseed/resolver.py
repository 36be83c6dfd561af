"""Map root variables to the statements of a test case that define them."""

from __future__ import annotations

import logging
from typing import Any, Iterator, Mapping

from pytest_smartseed.errors import ResolutionFailure
from pytest_smartseed.models import ConstantValue, Instruction, RootVariable, TargetOperation
from pytest_smartseed.testcase import (
    AssignmentStatement,
    FieldReference,
    MethodStatement,
    Statement,
    TestCase,
    VariableReference,
)

logger = logging.getLogger(__name__)

GraphToCodeMap = Mapping[RootVariable, list[VariableReference]]

# Opnames whose constant is implied by the opname itself
CONSTANT_OPNAMES: dict[str, Any] = {
    "ICONST_M1": -1,
    "ICONST_0": 0,
    "ICONST_1": 1,
    "ICONST_2": 2,
    "ICONST_3": 3,
    "ICONST_4": 4,
    "ICONST_5": 5,
    "LCONST_0": 0,
    "LCONST_1": 1,
    "FCONST_0": 0.0,
    "FCONST_1": 1.0,
    "FCONST_2": 2.0,
    "DCONST_0": 0.0,
    "DCONST_1": 1.0,
}

# Opnames carrying the constant as their operand
OPERAND_OPNAMES = frozenset({"BIPUSH", "SIPUSH", "LOAD_SMALL_INT", "LDC", "LOAD_CONST"})


def constant_value(instruction: Instruction) -> Any:
    """The literal a constant-loading instruction pushes."""
    if instruction.opname in CONSTANT_OPNAMES:
        return CONSTANT_OPNAMES[instruction.opname]
    if instruction.opname in OPERAND_OPNAMES:
        return instruction.arg
    raise ResolutionFailure(f"{instruction.opname} does not load a constant")


def target_call(test_case: TestCase, target: TargetOperation | None) -> MethodStatement | None:
    """The last call to ``target`` (the last call at all without one)."""
    for statement in reversed(test_case.statements):
        if isinstance(statement, MethodStatement) and (
            target is None or statement.signature == target.signature
        ):
            return statement
    return None


def target_call_params(test_case: TestCase, target: TargetOperation | None) -> list[VariableReference]:
    call = target_call(test_case, target)
    if call is None:
        return []
    return list(call.params)


def root_value_position(test_case: TestCase, position: int) -> int:
    """Follow ``step`` links from ``position`` to the statement holding the value."""
    seen: set[int] = set()
    while True:
        if position in seen or not 0 <= position < len(test_case):
            raise ResolutionFailure(f"no root value statement reachable from {position}")
        seen.add(position)
        following = test_case[position].step(test_case, position)
        if following is None:
            return position
        position = following


def _field_definition(test_case: TestCase, root: RootVariable) -> int | None:
    name = root.name
    setters = {f"set{name}".lower(), f"set_{name}".lower()}

    def defines_field(position: int, statement: Statement) -> bool:
        if isinstance(statement, AssignmentStatement) and isinstance(statement.lhs, FieldReference):
            if root.owner is not None and statement.lhs.owner_type != root.owner:
                return False
            variable = test_case.variable_name(position)
            return variable == name or variable.endswith(f".{name}")
        if isinstance(statement, MethodStatement) and statement.callee is not None:
            return (
                statement.method_name.lower() in setters
                and (root.owner is None or statement.owner_type == root.owner)
            )
        return False

    return test_case.find_last(defines_field)


def _candidate_positions(
    root: RootVariable,
    test_case: TestCase,
    graph_to_code: GraphToCodeMap,
    params: list[VariableReference],
) -> Iterator[int]:
    refs = graph_to_code.get(root)
    if refs:
        yield min(refs, key=lambda ref: ref.position).position
    if root.is_parameter and root.param_index is not None:
        index = root.param_index - 1
        if 0 <= index < len(params):
            yield params[index].position
    if root.is_field:
        position = _field_definition(test_case, root)
        if position is not None:
            yield position


def resolve(
    root: RootVariable,
    test_case: TestCase,
    graph_to_code: GraphToCodeMap,
    target: TargetOperation | None = None,
) -> Statement | ConstantValue:
    """The statement whose value realizes ``root`` in ``test_case``.

    Constants resolve to their literal. Raises ResolutionFailure when
    nothing in the test case can be tied to the root variable.
    """
    if root.is_constant:
        return ConstantValue(root.instruction, constant_value(root.instruction))

    params = target_call_params(test_case, target)
    for position in _candidate_positions(root, test_case, graph_to_code, params):
        try:
            return test_case[root_value_position(test_case, position)]
        except ResolutionFailure as e:
            logger.debug("no root value for %s at %d: %s", root.name or root.instruction, position, e)

    if params:
        logger.debug("falling back to the target parameters for %s", root.name or root.instruction)
    for param in params:
        try:
            return test_case[root_value_position(test_case, param.position)]
        except ResolutionFailure:
            continue

    raise ResolutionFailure(f"{root.kind.value} {root.name or root.instruction} not found in test case")
