"""Make the state a branch depends on explicit in a test case."""

from __future__ import annotations

import logging

from pytest_smartseed.analysis import DependencyAnalysis
from pytest_smartseed.errors import ConstructionFailure
from pytest_smartseed.factory import TestFactory, annotation_from_name, type_hints
from pytest_smartseed.models import Branch, RootVariable, TargetOperation, VarKind
from pytest_smartseed.resolver import GraphToCodeMap, target_call
from pytest_smartseed.testcase import (
    AssignmentStatement,
    ConstructorStatement,
    FieldReference,
    MethodStatement,
    TestCase,
    VariableReference,
)

logger = logging.getLogger(__name__)


class ConstructionPathSynthesizer:
    """Builds the graph-to-code map of a test case for one branch.

    Parameters map to the arguments of the target call. Fields are
    assigned explicitly right before that call so that their values are
    ordinary primitives of the test case.
    """

    def __init__(
        self,
        factory: TestFactory,
        analysis: DependencyAnalysis | None = None,
        target: TargetOperation | None = None,
    ) -> None:
        self.factory = factory
        self.analysis = analysis
        self.target = target if target is not None else factory.target
        self._graph_to_code: dict[RootVariable, list[VariableReference]] = {}

    @property
    def graph_to_code_map(self) -> GraphToCodeMap:
        return {var: list(refs) for var, refs in self._graph_to_code.items()}

    def construct_difficult_object_statement(self, test_case: TestCase, branch: Branch) -> None:
        self._graph_to_code = {}
        if self.analysis is None:
            return

        call = target_call(test_case, self.target)
        if call is None:
            raise ConstructionFailure(f"test case does not call {self.target.signature}")

        for root in self.analysis.root_variables(branch):
            for var in root.all_children_including_itself():
                if var in self._graph_to_code:
                    continue
                if var.is_parameter and var.param_index is not None:
                    index = var.param_index - 1
                    if 0 <= index < len(call.params):
                        self._graph_to_code[var] = [call.params[index]]
                elif var.is_field:
                    self._graph_to_code[var] = [self._field_value(test_case, call, var)]

    def _owner_object(self, test_case: TestCase, call: MethodStatement, var: RootVariable) -> VariableReference | None:
        if var.kind is VarKind.STATIC_FIELD:
            return None
        if call.callee is not None and call.callee.type_name == var.owner:
            return call.callee
        call_position = test_case.position_of(call)
        position = test_case.find_last(
            lambda i, s: i < call_position
            and isinstance(s, ConstructorStatement)
            and s.type_name == var.owner
        )
        if position is None:
            raise ConstructionFailure(f"no {var.owner} object to hold field {var.name}")
        return VariableReference(position, test_case[position].type_name)

    def _field_value(self, test_case: TestCase, call: MethodStatement, var: RootVariable) -> VariableReference:
        if var.owner is None:
            raise ConstructionFailure(f"field {var.name} has no owner type")
        owner = self._owner_object(test_case, call, var)
        call_position = test_case.position_of(call)

        existing = test_case.find_last(
            lambda i, s: i < call_position
            and isinstance(s, AssignmentStatement)
            and isinstance(s.lhs, FieldReference)
            and s.lhs.name == var.name
            and s.lhs.owner_type == var.owner
            and s.lhs.owner == owner
        )
        if existing is not None:
            return test_case[existing].value  # type: ignore[attr-defined]

        cls = annotation_from_name(var.owner)
        hints = type_hints(cls)
        if var.name not in hints:
            raise ConstructionFailure(f"unknown type of {var.owner}.{var.name}")

        statements, value = self.factory.generate_block(hints[var.name], call_position)
        statements.append(AssignmentStatement(FieldReference(owner, var.owner, var.name), value))
        test_case.insert_block(call_position, statements)
        self._shift_map(call_position, len(statements))
        logger.debug("assigned %s.%s before the target call", var.owner, var.name)
        return value

    def _shift_map(self, from_position: int, delta: int) -> None:
        for var, refs in self._graph_to_code.items():
            self._graph_to_code[var] = [ref.shifted(from_position, delta) for ref in refs]
