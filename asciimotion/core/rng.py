"""Deterministic random stream shared by every generator.

All stochastic decisions in a run draw from one ``SeededRandom``. The
stream is a PCG64 generator keyed only by the integer seed, so the n-th
draw is a pure function of ``(seed, n)``.
"""

from __future__ import annotations

import numpy as np

_SEED_MASK = (1 << 63) - 1


class SeededRandom:
    """Seeded pseudo-random stream with the helpers generators need."""

    def __init__(self, seed: int = 0):
        self.seed = int(seed) & _SEED_MASK
        self._gen = np.random.Generator(np.random.PCG64(self.seed))
        self.draws = 0

    def next(self) -> float:
        """Next float in [0, 1)."""
        self.draws += 1
        return float(self._gen.random())

    def uniform(self, low: float, high: float) -> float:
        return low + (high - low) * self.next()

    def signed(self) -> float:
        """Next float in [-1, 1)."""
        return self.next() * 2.0 - 1.0

    def vary(self, base: float, amount: float) -> float:
        """``base * (1 + (draw*2-1) * amount)``: a randomness percentage applied to *base*."""
        return base * (1.0 + self.signed() * amount)

    def chance(self, probability: float) -> bool:
        """One draw; True with *probability*."""
        return self.next() < probability

    def integer(self, low: int, high: int) -> int:
        """Integer in [low, high] inclusive."""
        span = high - low + 1
        return low + min(span - 1, int(self.next() * span))

    def permutation(self, n: int) -> np.ndarray:
        """Fisher-Yates shuffle of ``arange(n)`` driven by this stream."""
        perm = np.arange(n, dtype=np.int64)
        for i in range(n - 1, 0, -1):
            j = int(self.next() * (i + 1))
            perm[i], perm[j] = perm[j], perm[i]
        return perm

    def __repr__(self) -> str:
        return f"SeededRandom(seed={self.seed}, draws={self.draws})"
