"""Line tracing via sys.settrace, with an optional execution deadline."""

from __future__ import annotations

import os
import sys
import threading
import time
from typing import Any

from pytest_smartseed.errors import ExecutionTimeout

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__)) + os.sep


class _LineTracer:
    """Trace function that records line execution for target files.

    When a deadline is set, every traced frame outside this package checks it
    and raises ``ExecutionTimeout`` once it has passed.
    """

    def __init__(self, target_files: set[str], deadline: float | None = None) -> None:
        self.target_files = target_files
        self.deadline = deadline
        self.lines_hit: set[tuple[str, int]] = set()
        self._active = False

    def start(self) -> None:
        self.lines_hit.clear()
        self._active = True
        sys.settrace(self._trace)
        threading.settrace(self._trace)

    def stop(self) -> set[tuple[str, int]]:
        sys.settrace(None)
        threading.settrace(None)
        self._active = False
        return self.lines_hit.copy()

    def _check_deadline(self) -> None:
        if self.deadline is not None and time.monotonic() > self.deadline:
            self._active = False
            raise ExecutionTimeout(f"execution exceeded deadline {self.deadline:.3f}")

    def _trace(self, frame: Any, event: str, arg: Any) -> Any:
        if not self._active:
            return None
        if event == "call":
            filename = frame.f_code.co_filename
            if filename.startswith(_PACKAGE_DIR):
                return None
            self._check_deadline()
            if filename in self.target_files:
                return self._trace_lines
            if self.deadline is not None:
                return self._trace_deadline
            return None
        return None

    def _trace_lines(self, frame: Any, event: str, arg: Any) -> Any:
        if event == "line":
            self._check_deadline()
            filename = frame.f_code.co_filename
            if filename in self.target_files:
                self.lines_hit.add((filename, frame.f_lineno))
        return self._trace_lines

    def _trace_deadline(self, frame: Any, event: str, arg: Any) -> Any:
        if event == "line":
            self._check_deadline()
        return self._trace_deadline
