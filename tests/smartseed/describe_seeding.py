"""Tests for pytest_smartseed.seeding."""

import time

import pytest

from pytest_smartseed.errors import SeedTimeout
from pytest_smartseed.factory import TestFactory
from pytest_smartseed.models import TargetOperation
from pytest_smartseed.seeding import (
    build_seed_calling_target,
    calls_target,
    initialize_test,
    mutate_null_statements,
)
from pytest_smartseed.testcase import (
    IntPrimitiveStatement,
    MethodStatement,
    NullStatement,
    TestCase,
)

MOD = "target.smartseed_examples"
ECHO = TargetOperation(MOD, "echo")
COUNTDOWN = TargetOperation(MOD, "countdown")


class _FailingFactory(TestFactory):
    def insert_random_statement(self, test_case, position):
        return -1


class _UnfixableNullFactory(TestFactory):
    def insert_random_statement(self, test_case, position):
        ref = test_case.add(NullStatement("no_such_package.Missing"))
        test_case.add(MethodStatement(MOD, "echo", [ref]))
        return 1


def describe_initialize_test():
    def it_returns_a_non_empty_test_case():
        test = initialize_test(TestFactory(ECHO))
        assert len(test) > 0
        assert calls_target(test, ECHO)

    def it_times_out_when_the_factory_always_fails():
        start = time.monotonic()
        with pytest.raises(SeedTimeout):
            initialize_test(_FailingFactory(ECHO), timeout=0.2)
        assert 0.2 <= time.monotonic() - start < 2.0

    def it_gives_up_after_the_default_budget():
        start = time.monotonic()
        with pytest.raises(SeedTimeout) as info:
            initialize_test(_FailingFactory(ECHO))
        elapsed = time.monotonic() - start
        assert info.value.budget_seconds == 3.0
        assert 3.0 <= elapsed < 4.5

    def it_retries_while_nulls_remain():
        with pytest.raises(SeedTimeout):
            initialize_test(_UnfixableNullFactory(ECHO), timeout=0.2)

    def it_accepts_nulls_when_allowed():
        test = initialize_test(_UnfixableNullFactory(ECHO), allow_null_inputs=True, timeout=0.2)
        assert isinstance(test[0], NullStatement)


def describe_mutate_null_statements():
    def it_replaces_every_null():
        test = TestCase()
        a = test.add(NullStatement("int"))
        owner = test.add(NullStatement(f"{MOD}.Thermostat"))
        test.add(MethodStatement(MOD, "Thermostat.is_heating", [a], callee=owner))
        mutate_null_statements(test, TestFactory(ECHO))
        assert not any(isinstance(s, NullStatement) for s in test)
        assert test.is_valid()

    def it_keeps_nulls_it_cannot_replace():
        test = TestCase()
        test.add(NullStatement("no_such_package.Missing"))
        test.add(IntPrimitiveStatement(1))
        mutate_null_statements(test, TestFactory(ECHO))
        assert isinstance(test[0], NullStatement)


def describe_calls_target():
    def it_checks_the_last_statement():
        test = TestCase()
        x = test.add(IntPrimitiveStatement(1))
        test.add(MethodStatement(MOD, "echo", [x]))
        assert calls_target(test, ECHO) is True
        assert calls_target(test, COUNTDOWN) is False
        test.add(IntPrimitiveStatement(2))
        assert calls_target(test, ECHO) is False

    def it_is_false_for_empty_test_cases():
        assert calls_target(TestCase(), ECHO) is False


def describe_build_seed_calling_target():
    def it_retries_until_the_target_is_called_last():
        factory = TestFactory(ECHO, cluster=[COUNTDOWN, ECHO])
        for _ in range(5):
            assert calls_target(build_seed_calling_target(factory, ECHO), ECHO)

    def it_shares_one_deadline_across_retries():
        factory = TestFactory(ECHO, cluster=[COUNTDOWN])
        start = time.monotonic()
        with pytest.raises(SeedTimeout):
            build_seed_calling_target(factory, ECHO, timeout=0.2)
        assert time.monotonic() - start < 2.0
