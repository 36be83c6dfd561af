"""Tests for pytest_smartseed.operators."""

import pytest

from pytest_smartseed.configuration import configure
from pytest_smartseed.operators import (
    STRATEGIES,
    VALUE_MUTATIONS,
    mutate_value,
    mutations_for,
    random_value,
)


def describe_mutations_for():
    def it_returns_registry_operators_by_default():
        assert mutations_for("int") == VALUE_MUTATIONS["int"]
        assert mutations_for("bool") == ["flip"]

    def it_narrows_to_a_strategy():
        assert mutations_for("int", "random_integer_replace") == ["random_replace"]

    def it_falls_back_when_the_strategy_does_not_cover_the_type():
        assert "str" not in STRATEGIES["random_integer_replace"]
        assert mutations_for("str", "random_integer_replace") == VALUE_MUTATIONS["str"]

    def it_returns_nothing_for_unknown_types():
        assert mutations_for("bytes") == []


def describe_random_value():
    def it_stays_within_the_configured_range():
        configure(max_int=5)
        for _ in range(50):
            assert -5 <= random_value("int") <= 5

    def it_uses_the_configured_string_length():
        configure(string_length=4)
        assert len(random_value("str")) == 4

    def it_rejects_non_primitive_types():
        with pytest.raises(KeyError):
            random_value("list")


def describe_mutate_value():
    def it_always_changes_the_value():
        for type_name, value in [("int", 3), ("float", 2.5), ("str", "abc"), ("bool", True)]:
            for _ in range(20):
                assert mutate_value(type_name, value) != value

    def it_keeps_the_type():
        assert isinstance(mutate_value("int", 3), int)
        assert isinstance(mutate_value("str", ""), str)

    def it_stays_within_max_delta_for_delta_only():
        configure(max_delta=2)
        for _ in range(20):
            assert abs(mutate_value("int", 100, "delta_only") - 100) <= 2

    def it_leaves_unknown_types_alone():
        assert mutate_value("bytes", b"x") == b"x"

    def it_draws_a_fresh_value_for_none():
        assert isinstance(mutate_value("int", None), int)
