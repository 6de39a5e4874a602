"""Seeded random source.

Every draw made while generating a case comes from a stream created here.
The seed string is hashed to a 32-bit state with FNV-1a, and each draw
advances the state with a mulberry32 step.  All arithmetic is masked to 32
bits so the stream is identical to the one the browser-side generator
produced for the same seed.

Usage:
    rng = create_rng("9f1c2b")
    rng.random()              # float in [0, 1)
    rng.randint(10, 15)       # inclusive
    rng.shuffle([1, 2, 3])    # new list
    rng.random_step(65, 240, 5)
"""

from __future__ import annotations

import math
from typing import Sequence, TypeVar

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF
_FNV_OFFSET = 2166136261
_FNV_PRIME = 16777619
_MULBERRY_INCREMENT = 0x6D2B79F5


def hash_seed(value: object) -> int:
    """32-bit FNV-1a hash of ``str(value)`` over UTF-16 code units."""
    text = str(value)
    data = text.encode("utf-16-le")
    h = _FNV_OFFSET
    for i in range(0, len(data), 2):
        h ^= data[i] | (data[i + 1] << 8)
        h = (h * _FNV_PRIME) & _MASK32
    return h


class SeededRandom:
    """Deterministic PRNG stream derived from a string seed."""

    def __init__(self, seed: object):
        self.seed = str(seed)
        self._state = hash_seed(self.seed)

    def random(self) -> float:
        self._state = (self._state + _MULBERRY_INCREMENT) & _MASK32
        s = self._state
        t = ((s ^ (s >> 15)) * (1 | s)) & _MASK32
        t ^= (t + (((t ^ (t >> 7)) * (61 | t)) & _MASK32)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296

    def randint(self, lo: int, hi: int) -> int:
        """Uniform integer in ``[lo, hi]``."""
        return math.floor(self.random() * (hi - lo + 1)) + lo

    def shuffle(self, items: Sequence[T]) -> list[T]:
        """Fisher-Yates shuffle; returns a new list."""
        out = list(items)
        for i in range(len(out) - 1, 0, -1):
            j = math.floor(self.random() * (i + 1))
            out[i], out[j] = out[j], out[i]
        return out

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("choice() from an empty sequence")
        return items[self.randint(0, len(items) - 1)]

    def random_step(self, lo: float, hi: float, step: float = 5) -> float:
        """Draw a multiple of ``step`` between ``lo`` and ``hi``.

        When no multiple of ``step`` lies inside the range the lower
        multiple is used, so the result is always positive for positive
        bounds.
        """
        start = math.ceil(lo / step)
        end = math.floor(hi / step)
        if end < start:
            end = start
        return step * self.randint(start, end)


def create_rng(seed: object) -> SeededRandom:
    return SeededRandom(seed)


def derive_rng(seed: object, label: str) -> SeededRandom:
    """Independent stream for a named sub-task (e.g. ``statement``)."""
    return SeededRandom(f"{seed}|{label}")
