"""Branches guarded by values of varying distance from the inputs."""

from __future__ import annotations

from typing import ClassVar


def dynamic_example1(x: int, y: int) -> bool:
    z = (y + 999999) // 1333
    if x == z:
        return True
    return False


def dynamic_example2(x: int, y: int) -> bool:
    if x // 20000 == 345:
        return True
    return False


def static_example1(x: int, y: int) -> bool:
    if x == 34500000:
        return True
    return False


def static_example2(x: str, y: int) -> bool:
    if x == "34500000":
        return True
    return False


def static_example3(x: str, y: int) -> bool:
    a = x[: len(x) - 3]
    if a == "it is a difficult string":
        return True
    return False


def echo(x: int) -> int:
    if x > 0:
        print("positive")
    return x


def load_instructions(command: str) -> bool:
    if command == "":
        return False
    if command.lower() == "q":
        return False
    return True


def countdown(n: int) -> int:
    while n > 0:
        n -= 1
    return n


def guarded_countdown(n: int) -> int:
    while n > 0:
        try:
            n -= 1
        except Exception:
            return -1
    return n


def total(values: list[int]) -> int:
    result = 0
    for value in values:
        result += value
    if result > 100:
        return 100
    return result


class SuffixFilter:
    """Accept file names by suffix."""

    def __init__(self, suffixes: list[str], description: str) -> None:
        self.suffixes = suffixes
        self.description = description

    def accept(self, name: str) -> bool:
        suffix = None
        i = name.rfind(".")
        if 0 < i < len(name) - 1:
            suffix = name[i + 1:].lower()
        return suffix is not None and self.belongs(suffix)

    def belongs(self, suffix: str) -> bool:
        for known in self.suffixes:
            if suffix == known:
                return True
        return False


class Thermostat:
    """Heats while the temperature is below the threshold."""

    unit: ClassVar[str] = "C"
    threshold: int

    def __init__(self, threshold: int) -> None:
        self.threshold = threshold

    def set_threshold(self, threshold: int) -> None:
        self.threshold = threshold

    def is_heating(self, temperature: int) -> bool:
        if temperature < self.threshold:
            return True
        return False

    @staticmethod
    def describe(unit: str) -> str:
        return f"thermostat in {unit}"
