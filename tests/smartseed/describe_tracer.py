"""Tests for pytest_smartseed.tracer."""

import time

import pytest

import target.smartseed_examples as examples
from pytest_smartseed.errors import ExecutionTimeout
from pytest_smartseed.tracer import _LineTracer


def describe_LineTracer():
    def it_records_lines_of_target_files():
        tracer = _LineTracer(target_files={examples.__file__})
        tracer.start()
        try:
            examples.countdown(2)
        finally:
            hits = tracer.stop()
        assert {f for f, _ in hits} == {examples.__file__}
        assert len(hits) >= 3

    def it_ignores_other_files():
        tracer = _LineTracer(target_files={"/nonexistent/file.py"})
        tracer.start()
        try:
            examples.countdown(2)
        finally:
            hits = tracer.stop()
        assert hits == set()

    def it_clears_hits_on_restart():
        tracer = _LineTracer(target_files={"/nonexistent/file.py"})
        tracer.lines_hit.add(("/nonexistent/file.py", 10))
        tracer.start()
        try:
            assert tracer._active is True
            assert tracer.lines_hit == set()
        finally:
            tracer.stop()
        assert tracer._active is False

    def it_raises_once_the_deadline_has_passed():
        tracer = _LineTracer(set(), deadline=time.monotonic() - 1)
        tracer.start()
        try:
            with pytest.raises(ExecutionTimeout):
                examples.countdown(10)
        finally:
            tracer.stop()

    def it_interrupts_long_loops():
        tracer = _LineTracer(set(), deadline=time.monotonic() + 0.05)
        tracer.start()
        try:
            with pytest.raises(ExecutionTimeout):
                examples.countdown(10**9)
        finally:
            tracer.stop()

    def it_is_not_swallowed_by_code_catching_exceptions():
        tracer = _LineTracer(set(), deadline=time.monotonic() + 0.05)
        tracer.start()
        try:
            with pytest.raises(ExecutionTimeout):
                examples.guarded_countdown(10**9)
        finally:
            tracer.stop()
