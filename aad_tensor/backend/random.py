# backend/random.py
"""
Explicit random source for the random-tensor and multinomial kernels.

Kernels never reach for an ambient generator: they take a `RandomSource`
argument, defaulting to the module-level `default_random`.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

from ..errors import InvalidParameterError

logger = logging.getLogger(__name__)


class RandomSource:
    """
    Owns one `numpy.random.Generator`.

    Not thread-safe: concurrent callers must either use their own
    RandomSource or serialise access externally.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed(seed)

    def seed(self, seed: Optional[int] = None):
        logger.debug("reseeding random source with %r", seed)
        self._rng = np.random.default_rng(seed)

    def uniform(self, n: int, low: float = 0.0, high: float = 1.0) -> np.ndarray:
        return self._rng.uniform(low, high, size=n)

    def normal(self, n: int, mean: float = 0.0, stddev: float = 1.0) -> np.ndarray:
        return self._rng.normal(mean, stddev, size=n)

    def choice_index(self, probs: Sequence[float], n: int = 1) -> np.ndarray:
        """Draw `n` indices (with replacement) from unnormalised weights `probs`."""
        p = np.asarray(probs, dtype=np.float64)
        total = p.sum()
        if total <= 0 or np.any(p < 0):
            raise InvalidParameterError(f"Expecting non-negative weights with a positive sum, received {p}")
        return self._rng.choice(len(p), size=n, p=p / total)


# process-wide default; see the class docstring about threads
default_random = RandomSource()


def seed(value: Optional[int] = None):
    """Reseed the default random source."""
    default_random.seed(value)
