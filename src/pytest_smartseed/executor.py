"""Execute a test case in-process, statement by statement."""

from __future__ import annotations

import contextlib
import io
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from pytest_smartseed.errors import ExecutionTimeout
from pytest_smartseed.testcase import TestCase
from pytest_smartseed.tracer import _LineTracer

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Outcome of running one test case."""

    values: list[Any]
    exception: BaseException | None = None
    exception_position: int | None = None
    timed_out: bool = False
    lines_hit: set[tuple[str, int]] = field(default_factory=set)
    time_seconds: float = 0.0

    @property
    def crashed(self) -> bool:
        return self.exception is not None or self.timed_out

    def lines_in(self, file_path: str) -> set[int]:
        return {line for f, line in self.lines_hit if f == file_path}


def execute_test_case(
    test_case: TestCase,
    target_files: Iterable[str] = (),
    timeout: float | None = None,
) -> ExecutionResult:
    """Run every statement in order; stop at the first failure.

    Exceptions raised by code under test are recorded on the result rather
    than propagated. Output is suppressed.
    """
    start = time.monotonic()
    deadline = start + timeout if timeout else None
    tracer = _LineTracer({f for f in target_files if f}, deadline)
    scope: list[Any] = []
    result = ExecutionResult(values=scope)

    loader = test_case.loader
    with loader.activated():
        with contextlib.redirect_stdout(io.StringIO()), contextlib.redirect_stderr(io.StringIO()):
            tracer.start()
            try:
                for position, statement in enumerate(test_case):
                    try:
                        scope.append(statement.execute(scope, loader))
                    except ExecutionTimeout:
                        result.timed_out = True
                        result.exception_position = position
                        break
                    except Exception as e:
                        result.exception = e
                        result.exception_position = position
                        break
            finally:
                result.lines_hit = tracer.stop()

    result.time_seconds = time.monotonic() - start
    if result.crashed:
        logger.debug(
            "execution stopped at statement %s: %r%s",
            result.exception_position,
            result.exception,
            " (timeout)" if result.timed_out else "",
        )
    return result
