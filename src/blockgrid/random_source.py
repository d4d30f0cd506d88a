"""Seeded random sources and the shuffle primitive used by region growing.

Any object with a ``random() -> float`` method returning values in
``[0, 1)`` can drive the generators, so :class:`random.Random` works as
well as :class:`Mulberry32`.  The random source is stateful and must be
consumed by one caller at a time.
"""

from __future__ import annotations

import math
from typing import MutableSequence, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF


@runtime_checkable
class RandomSource(Protocol):
    def random(self) -> float:
        ...


def _uint32(n: int) -> int:
    return n & _MASK32


def _imul(a: int, b: int) -> int:
    """32-bit integer multiply, keeping the low 32 bits."""
    return (a * b) & _MASK32


class Mulberry32:
    """Mulberry32 PRNG matching the generator used by the browser preview.

    A single 32-bit state word advanced by a Weyl increment and mixed with
    two multiply/xorshift rounds.  ``call_count`` tracks how many values
    have been drawn, which makes draw-order regressions easy to spot.
    """

    def __init__(self, seed: int) -> None:
        self._state = _uint32(int(seed))
        self.call_count = 0

    def random(self) -> float:
        """Generate next random number in [0, 1)."""
        self.call_count += 1
        self._state = _uint32(self._state + 0x6D2B79F5)
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= _uint32(t + _imul(t ^ (t >> 7), t | 61))
        return _uint32(t ^ (t >> 14)) / 4294967296.0

    def randint(self, low: int, high: int) -> int:
        """Integer in ``[low, high]`` inclusive."""
        if high < low:
            raise ValueError("high must be >= low")
        return low + int(self.random() * (high - low + 1))

    def getstate(self) -> tuple[int, int]:
        return (self._state, self.call_count)

    def setstate(self, state: tuple[int, int]) -> None:
        self._state, self.call_count = state

    def __repr__(self) -> str:
        return f"Mulberry32(state={self._state:#010x}, calls={self.call_count})"


class CountingSource:
    """Wrap a random source and count the draws taken through it."""

    def __init__(self, source: RandomSource) -> None:
        self._source = source
        self.draws = 0

    def random(self) -> float:
        self.draws += 1
        return self._source.random()


def shuffle_in_place(values: MutableSequence[T], random: RandomSource) -> None:
    """Fisher–Yates shuffle drawing exactly ``len(values) - 1`` numbers."""
    for index in range(len(values) - 1, 0, -1):
        swap_index = int(math.floor(random.random() * (index + 1)))
        values[index], values[swap_index] = values[swap_index], values[index]


def clamp01(value: float) -> float:
    """Clamp to ``[0, 1]``; NaN and infinities map to 0."""
    if math.isnan(value) or math.isinf(value):
        return 0.0
    if value <= 0:
        return 0.0
    if value >= 1:
        return 1.0
    return float(value)
