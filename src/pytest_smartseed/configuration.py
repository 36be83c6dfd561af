"""Tunable parameters of the sensitivity engine."""

from __future__ import annotations

from dataclasses import dataclass, fields


@dataclass
class SensitivityConfig:
    """Configuration shared by seeding, mutation and scoring."""

    # Trials per analysis request
    dynamic_sensitivity_threshold: int = 10

    # Minimum edit-distance similarity for two non-numeric values
    value_similarity_threshold: float = 0.8

    # Maximum absolute difference for two numbers to count as similar
    numeric_tolerance: int = 10

    # Wall-clock budget for building a seed test case (seconds)
    seed_timeout_seconds: float = 3.0

    # Wall-clock budget for a single test case execution (seconds)
    execution_timeout_seconds: float = 2.0

    allow_null_inputs: bool = False
    null_probability: float = 0.1

    # Value generation and mutation
    random_perturbation: float = 0.2
    max_delta: int = 20
    max_int: int = 1000
    string_length: int = 8
    array_length: int = 3
    construction_depth: int = 3

    random_seed: int | None = None


config = SensitivityConfig()


def configure(**overrides: object) -> SensitivityConfig:
    """Update the process-wide configuration in place and return it."""
    known = {f.name for f in fields(SensitivityConfig)}
    for name, value in overrides.items():
        if name not in known:
            raise AttributeError(f"unknown configuration option: {name}")
        if value is not None:
            setattr(config, name, value)
    return config


def reset() -> SensitivityConfig:
    """Restore every option to its default value."""
    defaults = SensitivityConfig()
    for f in fields(SensitivityConfig):
        setattr(config, f.name, getattr(defaults, f.name))
    return config
