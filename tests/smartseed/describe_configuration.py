"""Tests for pytest_smartseed.configuration and pytest_smartseed.randomness."""

import pytest

from pytest_smartseed import randomness
from pytest_smartseed.configuration import SensitivityConfig, config, configure, reset


def describe_SensitivityConfig():
    def it_has_the_documented_defaults():
        c = SensitivityConfig()
        assert c.dynamic_sensitivity_threshold == 10
        assert c.value_similarity_threshold == 0.8
        assert c.numeric_tolerance == 10
        assert c.seed_timeout_seconds == 3.0
        assert c.allow_null_inputs is False
        assert c.random_seed is None


def describe_configure():
    def it_updates_the_shared_instance():
        returned = configure(dynamic_sensitivity_threshold=3)
        assert returned is config
        assert config.dynamic_sensitivity_threshold == 3

    def it_skips_none_values():
        configure(seed_timeout_seconds=None)
        assert config.seed_timeout_seconds == 3.0

    def it_rejects_unknown_options():
        with pytest.raises(AttributeError, match="no_such_option"):
            configure(no_such_option=1)


def describe_reset():
    def it_restores_defaults():
        configure(numeric_tolerance=99, max_int=5)
        reset()
        assert config.numeric_tolerance == 10
        assert config.max_int == 1000


def describe_randomness():
    def it_replays_the_same_draws_for_the_same_seed():
        randomness.set_seed(42)
        first = [randomness.next_int(100) for _ in range(5)]
        randomness.set_seed(42)
        assert [randomness.next_int(100) for _ in range(5)] == first

    def it_remembers_the_seed():
        randomness.set_seed(7)
        assert randomness.get_seed() == 7

    def it_draws_inclusive_ranges():
        values = {randomness.next_int_between(1, 2) for _ in range(50)}
        assert values == {1, 2}

    def it_builds_alphanumeric_strings():
        s = randomness.next_string(12)
        assert len(s) == 12
        assert s.isalnum()
