"""Build seed test cases that end in a call to the target operation."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from pytest_smartseed.configuration import config
from pytest_smartseed.errors import SeedTimeout
from pytest_smartseed.models import TargetOperation
from pytest_smartseed.testcase import MethodStatement, NullStatement, TestCase

if TYPE_CHECKING:
    from pytest_smartseed.factory import TestFactory

logger = logging.getLogger(__name__)


def mutate_null_statements(test_case: TestCase, factory: TestFactory) -> None:
    """Replace every NullStatement the factory knows a concrete value for."""
    position = 0
    while position < len(test_case):
        statement = test_case[position]
        if isinstance(statement, NullStatement):
            size = len(test_case)
            if factory.change_null_statement(test_case, statement):
                position += len(test_case) - size
        position += 1


def _has_null(test_case: TestCase) -> bool:
    return any(isinstance(s, NullStatement) for s in test_case)


def _check_budget(start: float, budget: float) -> None:
    if time.monotonic() - start > budget:
        raise SeedTimeout(budget)


def _initialize(
    factory: TestFactory, allow_null_inputs: bool, start: float, budget: float
) -> TestCase:
    while True:
        _check_budget(start, budget)
        test_case = TestCase()
        success = factory.insert_random_statement(test_case, 0)
        if len(test_case) == 0 or success == -1:
            continue
        if not allow_null_inputs:
            mutate_null_statements(test_case, factory)
            if _has_null(test_case):
                continue
        return test_case


def initialize_test(
    factory: TestFactory,
    allow_null_inputs: bool = False,
    timeout: float | None = None,
) -> TestCase:
    """Ask ``factory`` for random test cases until one is usable.

    Raises SeedTimeout once ``timeout`` seconds (the configured seed budget
    by default) have passed without success.
    """
    budget = config.seed_timeout_seconds if timeout is None else timeout
    return _initialize(factory, allow_null_inputs, time.monotonic(), budget)


def calls_target(test_case: TestCase, target: TargetOperation) -> bool:
    last = test_case.last_statement
    return isinstance(last, MethodStatement) and last.signature == target.signature


def build_seed_calling_target(
    factory: TestFactory,
    target: TargetOperation,
    allow_null_inputs: bool = False,
    timeout: float | None = None,
) -> TestCase:
    """Like initialize_test, but the last statement must call ``target``.

    Every retry shares one deadline.
    """
    budget = config.seed_timeout_seconds if timeout is None else timeout
    start = time.monotonic()
    attempts = 0
    while True:
        attempts += 1
        test_case = _initialize(factory, allow_null_inputs, start, budget)
        if calls_target(test_case, target):
            logger.debug(
                "seed for %s built after %d attempt(s):\n%s",
                target.signature,
                attempts,
                test_case.to_code(),
            )
            return test_case
