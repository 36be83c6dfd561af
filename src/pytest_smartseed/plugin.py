"""pytest plugin entry point: configure the sensitivity engine from the command line."""

from __future__ import annotations

from pytest_smartseed import randomness
from pytest_smartseed.configuration import configure


def pytest_addoption(parser):  # type: ignore[no-untyped-def]
    group = parser.getgroup("smartseed", "dynamic sensitivity analysis")
    group.addoption(
        "--smartseed-trials",
        type=int,
        default=None,
        help="Mutate-and-observe trials per analysis request",
    )
    group.addoption(
        "--smartseed-seed", type=int, default=None, help="Seed for the randomness source"
    )
    group.addoption(
        "--smartseed-similarity",
        type=float,
        default=None,
        help="Minimum edit-distance similarity for value preservation",
    )
    group.addoption(
        "--smartseed-seed-timeout",
        type=float,
        default=None,
        help="Seconds allowed for building a seed test case",
    )


def pytest_configure(config):  # type: ignore[no-untyped-def]
    settings = configure(
        dynamic_sensitivity_threshold=config.getoption("smartseed_trials", default=None),
        value_similarity_threshold=config.getoption("smartseed_similarity", default=None),
        seed_timeout_seconds=config.getoption("smartseed_seed_timeout", default=None),
        random_seed=config.getoption("smartseed_seed", default=None),
    )
    if settings.random_seed is not None:
        randomness.set_seed(settings.random_seed)


def pytest_report_header(config):  # type: ignore[no-untyped-def]
    seed = randomness.get_seed()
    if seed is None:
        return None
    return f"smartseed: random seed {seed}"
