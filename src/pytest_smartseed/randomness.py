"""Seedable randomness source shared by the whole engine."""

from __future__ import annotations

import random
import string
from typing import Sequence, TypeVar

T = TypeVar("T")

RNG = random.Random()

_seed: int | None = None


def set_seed(seed: int | None) -> None:
    global _seed
    _seed = seed
    RNG.seed(seed)


def get_seed() -> int | None:
    return _seed


def next_int(upper: int) -> int:
    """Uniform integer in ``[0, upper)``."""
    return RNG.randrange(upper)


def next_int_between(lower: int, upper: int) -> int:
    """Uniform integer in ``[lower, upper]``."""
    return RNG.randint(lower, upper)


def next_float() -> float:
    return RNG.random()


def next_gaussian() -> float:
    return RNG.gauss(0.0, 1.0)


def next_bool() -> bool:
    return RNG.random() < 0.5


def choice(sequence: Sequence[T]) -> T:
    return RNG.choice(sequence)


def next_string(length: int) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(RNG.choice(alphabet) for _ in range(length))
