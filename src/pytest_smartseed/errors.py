"""Failure taxonomy for sensitivity analysis."""

from __future__ import annotations


class SensitivityError(Exception):
    """Base class for failures raised inside the analysis engine."""


class SeedTimeout(SensitivityError):
    """No valid seed test case could be built within the time budget."""

    def __init__(self, budget_seconds: float) -> None:
        super().__init__(f"no seed test case built within {budget_seconds:.1f}s")
        self.budget_seconds = budget_seconds


class ResolutionFailure(SensitivityError):
    """A root variable could not be mapped to a statement of the test case."""


class ConstructionFailure(SensitivityError):
    """Building a statement (or a difficult object) for a test case failed."""


class ClassLoadFailure(SensitivityError):
    """A module holding an observation site could not be loaded in the sandbox."""

    def __init__(self, module_name: str, reason: str) -> None:
        super().__init__(f"cannot load {module_name}: {reason}")
        self.module_name = module_name


class MissingFitness(SensitivityError):
    """No fitness function for the branch is attached to the chromosome."""


class ExecutionTimeout(BaseException):
    """Executing a test case exceeded its time budget.

    Raised from inside the tracer, so it must not be caught by code under
    test that handles ``Exception``.
    """
