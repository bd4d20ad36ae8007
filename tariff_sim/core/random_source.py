"""Seeded pseudo-random stream shared by every draw of a run."""

from __future__ import annotations

import numpy as np


class RandomSource:
    """Reproducible stream of uniform variates on ``[0, 1)``.

    Wraps a numpy ``Generator`` seeded once per run. Two sources built from
    the same seed return identical sequences for the same call sequence.
    """

    def __init__(self, seed: int) -> None:
        self.seed = int(seed)
        self._rng = np.random.default_rng(self.seed)
        self.draws = 0

    def next(self) -> float:
        self.draws += 1
        return float(self._rng.random())

    def __repr__(self) -> str:
        return f"RandomSource(seed={self.seed}, draws={self.draws})"


__all__ = ["RandomSource"]
