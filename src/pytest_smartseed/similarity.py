"""Tolerant equality between an input value and an observed value."""

from __future__ import annotations

import math
from numbers import Real
from typing import Any

from pytest_smartseed.configuration import config


def _as_number(value: Any) -> int | float | None:
    """Numeric view of a value: numbers as-is, single characters by code point."""
    if isinstance(value, bool):
        return None
    if isinstance(value, Real):
        return value  # type: ignore[return-value]
    if isinstance(value, str) and len(value) == 1:
        return ord(value)
    return None


def _numbers_close(head: int | float, tail: int | float, tolerance: int) -> bool:
    if isinstance(head, int) and isinstance(tail, int):
        return abs(head - tail) <= tolerance
    # Either test passing is enough: integer view (truncated) or float view.
    try:
        if math.isfinite(head) and math.isfinite(tail):
            if abs(int(head) - int(tail)) <= tolerance:
                return True
        return abs(float(head) - float(tail)) <= tolerance
    except OverflowError:
        # an int beyond float range
        return False


def edit_distance(head: str, tail: str) -> int:
    """Levenshtein distance where letters differing only in case cost nothing."""
    if not head:
        return len(tail)
    if not tail:
        return len(head)
    previous = list(range(len(tail) + 1))
    for i, ch1 in enumerate(head, start=1):
        current = [i] + [0] * len(tail)
        for j, ch2 in enumerate(tail, start=1):
            cost = 0 if ch1 == ch2 or ch1.lower() == ch2.lower() else 1
            current[j] = min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            )
        previous = current
    return previous[-1]


def similarity_ratio(head: str | None, tail: str | None) -> float:
    """``1 - distance / max_len``, boosted by ``1 + 1/max_len`` for short strings."""
    if head is None or tail is None:
        return 0.0
    longest = max(len(head), len(tail))
    if longest == 0:
        return 1.0
    score = 1 - edit_distance(head, tail) / longest
    if longest <= 3:
        score *= 1 + 1 / longest
    return score


def is_similar(head: Any, tail: Any, threshold: float | None = None) -> bool:
    """Whether ``tail`` approximately preserves ``head``."""
    if head is None or tail is None:
        return False
    if head == tail:
        return True

    head_num = _as_number(head)
    tail_num = _as_number(tail)
    if head_num is not None and tail_num is not None:
        if _numbers_close(head_num, tail_num, config.numeric_tolerance):
            return True
        if not isinstance(head, str) and not isinstance(tail, str):
            return False

    if threshold is None:
        threshold = config.value_similarity_threshold
    if similarity_ratio(str(head), str(tail)) >= threshold:
        return True
    return head == tail
