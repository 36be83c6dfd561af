"""Value mutation operator registry for primitive inputs."""

from __future__ import annotations

import math
from typing import Any, Callable

from pytest_smartseed import randomness
from pytest_smartseed.configuration import config

# Operators applicable per primitive type, in the order they are tried
VALUE_MUTATIONS: dict[str, list[str]] = {
    "int": ["random_replace", "delta", "negate"],
    "float": ["random_replace", "delta", "negate"],
    "str": ["random_replace", "insert_char", "delete_char", "replace_char"],
    "bool": ["flip"],
}

# Single-operator strategies that override the registry
STRATEGIES: dict[str, dict[str, list[str]]] = {
    "random_integer_replace": {"int": ["random_replace"]},
    "delta_only": {"int": ["delta"], "float": ["delta"]},
}


def _random_int() -> int:
    return randomness.next_int_between(-config.max_int, config.max_int)


def _random_float() -> float:
    return randomness.next_float() * 2 * config.max_int - config.max_int


def _int_delta(value: int) -> int:
    delta = randomness.next_int_between(-config.max_delta, config.max_delta)
    return value + (delta or 1)


def _float_delta(value: float) -> float:
    if not math.isfinite(value):
        return _random_float()
    return value + randomness.next_gaussian() * config.max_delta


def _insert_char(value: str) -> str:
    pos = randomness.next_int(len(value) + 1)
    return value[:pos] + randomness.next_string(1) + value[pos:]


def _delete_char(value: str) -> str:
    if not value:
        return _insert_char(value)
    pos = randomness.next_int(len(value))
    return value[:pos] + value[pos + 1:]


def _replace_char(value: str) -> str:
    if not value:
        return _insert_char(value)
    pos = randomness.next_int(len(value))
    return value[:pos] + randomness.next_string(1) + value[pos + 1:]


_OPERATORS: dict[tuple[str, str], Callable[[Any], Any]] = {
    ("int", "random_replace"): lambda v: _random_int(),
    ("int", "delta"): _int_delta,
    ("int", "negate"): lambda v: -v if v else 1,
    ("float", "random_replace"): lambda v: _random_float(),
    ("float", "delta"): _float_delta,
    ("float", "negate"): lambda v: -v if v else 1.0,
    ("str", "random_replace"): lambda v: randomness.next_string(config.string_length),
    ("str", "insert_char"): _insert_char,
    ("str", "delete_char"): _delete_char,
    ("str", "replace_char"): _replace_char,
    ("bool", "flip"): lambda v: not v,
}


def mutations_for(type_name: str, strategy: str | None = None) -> list[str]:
    """Get the list of operators applicable to a primitive type."""
    if strategy is not None:
        narrowed = STRATEGIES.get(strategy, {})
        if type_name in narrowed:
            return narrowed[type_name]
    return VALUE_MUTATIONS.get(type_name, [])


def random_value(type_name: str) -> Any:
    """A fresh random value of a primitive type."""
    if type_name == "int":
        return _random_int()
    if type_name == "float":
        return _random_float()
    if type_name == "str":
        return randomness.next_string(config.string_length)
    if type_name == "bool":
        return randomness.next_bool()
    raise KeyError(type_name)


def mutate_value(type_name: str, value: Any, strategy: str | None = None) -> Any:
    """Return a value of the same type that differs from ``value``.

    Replacement is drawn with ``random_perturbation`` probability, otherwise a
    local operator is picked uniformly from the applicable ones.
    """
    names = mutations_for(type_name, strategy)
    if not names:
        return value
    if value is None:
        return random_value(type_name)
    for _ in range(100):
        if "random_replace" in names and randomness.next_float() < config.random_perturbation:
            name = "random_replace"
        else:
            name = randomness.choice(names)
        new_value = _OPERATORS[(type_name, name)](value)
        if new_value != value:
            return new_value
    return value
