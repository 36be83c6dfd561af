"""Tests for pytest_smartseed.synthesizer."""

import pytest

from pytest_smartseed.analysis import StaticDependencyTable
from pytest_smartseed.errors import ConstructionFailure
from pytest_smartseed.executor import execute_test_case
from pytest_smartseed.factory import TestFactory
from pytest_smartseed.models import Branch, Instruction, RootVariable, TargetOperation, VarKind
from pytest_smartseed.synthesizer import ConstructionPathSynthesizer
from pytest_smartseed.testcase import (
    AssignmentStatement,
    ConstructorStatement,
    FieldReference,
    IntPrimitiveStatement,
    MethodStatement,
    StringPrimitiveStatement,
    TestCase,
    VariableReference,
)

MOD = "target.smartseed_examples"
OWNER = f"{MOD}.Thermostat"
IS_HEATING = TargetOperation(MOD, "Thermostat.is_heating")
BRANCH = Branch(MOD, "Thermostat.is_heating", 10, 11, True)


def _ins(opname: str, arg=None) -> Instruction:
    return Instruction(MOD, "Thermostat.is_heating", 10, opname, arg)


PARAM = RootVariable(VarKind.PARAMETER, _ins("LOAD_FAST", "temperature"), "temperature", param_index=1)
THRESHOLD = RootVariable(VarKind.INSTANCE_FIELD, _ins("LOAD_ATTR", "threshold"), "threshold", owner=OWNER)
UNIT = RootVariable(VarKind.STATIC_FIELD, _ins("LOAD_ATTR", "unit"), "unit", owner=OWNER)


def _thermostat_test() -> TestCase:
    test = TestCase()
    threshold = test.add(IntPrimitiveStatement(20))
    thermostat = test.add(ConstructorStatement(MOD, "Thermostat", [threshold]))
    temperature = test.add(IntPrimitiveStatement(15))
    test.add(MethodStatement(MOD, "Thermostat.is_heating", [temperature], callee=thermostat))
    return test


def _synthesizer(*roots: RootVariable) -> ConstructionPathSynthesizer:
    table = StaticDependencyTable()
    for root in roots:
        table.add_root(BRANCH, root)
    return ConstructionPathSynthesizer(TestFactory(IS_HEATING), table)


def describe_ConstructionPathSynthesizer():
    def it_maps_nothing_without_an_analysis():
        test = _thermostat_test()
        synthesizer = ConstructionPathSynthesizer(TestFactory(IS_HEATING))
        synthesizer.construct_difficult_object_statement(test, BRANCH)
        assert synthesizer.graph_to_code_map == {}
        assert len(test) == 4

    def it_maps_parameters_to_call_arguments():
        test = _thermostat_test()
        synthesizer = _synthesizer(PARAM)
        synthesizer.construct_difficult_object_statement(test, BRANCH)
        assert synthesizer.graph_to_code_map == {PARAM: [VariableReference(2, "int")]}
        assert len(test) == 4

    def it_assigns_instance_fields_before_the_call():
        test = _thermostat_test()
        synthesizer = _synthesizer(THRESHOLD, PARAM)
        synthesizer.construct_difficult_object_statement(test, BRANCH)

        assert len(test) == 6
        assert isinstance(test[3], IntPrimitiveStatement)
        assignment = test[4]
        assert isinstance(assignment, AssignmentStatement)
        assert assignment.lhs == FieldReference(VariableReference(1, OWNER), OWNER, "threshold")
        assert synthesizer.graph_to_code_map[THRESHOLD] == [VariableReference(3, "int")]
        assert synthesizer.graph_to_code_map[PARAM] == [VariableReference(2, "int")]
        assert test.last_statement.signature == IS_HEATING.signature

        result = execute_test_case(test)
        assert result.values[-1] is (15 < test[3].value)

    def it_reuses_an_existing_field_assignment():
        test = _thermostat_test()
        synthesizer = _synthesizer(THRESHOLD)
        synthesizer.construct_difficult_object_statement(test, BRANCH)
        synthesizer.construct_difficult_object_statement(test, BRANCH)
        assert len(test) == 6
        assert synthesizer.graph_to_code_map[THRESHOLD] == [VariableReference(3, "int")]

    def it_assigns_static_fields_on_the_class():
        test = _thermostat_test()
        synthesizer = _synthesizer(UNIT)
        synthesizer.construct_difficult_object_statement(test, BRANCH)
        assert isinstance(test[3], StringPrimitiveStatement)
        assert test[4].lhs == FieldReference(None, OWNER, "unit")
        assert test.variable_name(4) == "Thermostat.unit"

    def it_rejects_fields_of_unknown_type():
        missing = RootVariable(VarKind.INSTANCE_FIELD, _ins("LOAD_ATTR", "humidity"), "humidity", owner=OWNER)
        with pytest.raises(ConstructionFailure, match="humidity"):
            _synthesizer(missing).construct_difficult_object_statement(_thermostat_test(), BRANCH)

    def it_rejects_fields_without_an_owner_object():
        other = RootVariable(
            VarKind.INSTANCE_FIELD, _ins("LOAD_ATTR", "suffixes"), "suffixes", owner=f"{MOD}.SuffixFilter"
        )
        with pytest.raises(ConstructionFailure, match="SuffixFilter"):
            _synthesizer(other).construct_difficult_object_statement(_thermostat_test(), BRANCH)

    def it_requires_a_call_to_the_target():
        test = TestCase()
        test.add(IntPrimitiveStatement(1))
        with pytest.raises(ConstructionFailure):
            _synthesizer(PARAM).construct_difficult_object_statement(test, BRANCH)
