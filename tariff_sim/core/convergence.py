"""Running statistics and convergence detection for Monte Carlo outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from math import sqrt
from typing import Tuple

from scipy.stats import norm

MIN_CONVERGENCE_SAMPLES = 30
ZERO_MEAN_EPSILON = 1e-12


@lru_cache(maxsize=32)
def z_score(confidence_level: float) -> float:
    """Two-sided standard normal critical value for ``confidence_level``."""
    if not 0.0 < confidence_level < 1.0:
        raise ValueError(f"confidence_level must be in (0, 1), got {confidence_level}")
    return float(norm.ppf(0.5 + confidence_level / 2.0))


@dataclass
class RunningStatistics:
    """Welford online accumulator (count, mean, sum of squared deviations)."""

    count: int = 0
    mean: float = 0.0
    sum_squared_deviation: float = 0.0

    def update(self, value: float) -> None:
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self.sum_squared_deviation += delta * (value - self.mean)

    @property
    def variance(self) -> float:
        if self.count < 2:
            return 0.0
        return self.sum_squared_deviation / (self.count - 1)

    @property
    def std_dev(self) -> float:
        return sqrt(self.variance)

    @property
    def standard_error(self) -> float:
        if self.count == 0:
            return 0.0
        return self.std_dev / sqrt(self.count)

    def confidence_interval(self, confidence_level: float) -> Tuple[float, float]:
        """Normal-approximation interval ``mean ± z * std / sqrt(n)``."""
        if self.count == 0:
            return (0.0, 0.0)
        half_width = z_score(confidence_level) * self.standard_error
        return (self.mean - half_width, self.mean + half_width)

    def copy(self) -> "RunningStatistics":
        return RunningStatistics(self.count, self.mean, self.sum_squared_deviation)


class ConvergenceTracker:
    """Track outcome statistics and decide when the estimate has stabilised."""

    def __init__(
        self,
        confidence_level: float,
        *,
        min_samples: int = MIN_CONVERGENCE_SAMPLES,
    ) -> None:
        z_score(confidence_level)
        self.confidence_level = confidence_level
        self.min_samples = min_samples
        self.statistics = RunningStatistics()

    @property
    def count(self) -> int:
        return self.statistics.count

    @property
    def mean(self) -> float:
        return self.statistics.mean

    def update(self, outcome: float) -> None:
        self.statistics.update(outcome)

    def confidence_interval(self, confidence_level: float | None = None) -> Tuple[float, float]:
        level = self.confidence_level if confidence_level is None else confidence_level
        return self.statistics.confidence_interval(level)

    def relative_half_width(self) -> float:
        """Half-width over ``|mean|``, or the absolute half-width when the mean is ~0."""
        lower, upper = self.confidence_interval()
        half_width = (upper - lower) / 2.0
        magnitude = abs(self.statistics.mean)
        if magnitude < ZERO_MEAN_EPSILON:
            return half_width
        return half_width / magnitude

    def has_converged(self, tolerance: float) -> bool:
        if self.statistics.count < self.min_samples:
            return False
        return self.relative_half_width() <= tolerance


__all__ = [
    "ConvergenceTracker",
    "RunningStatistics",
    "z_score",
    "MIN_CONVERGENCE_SAMPLES",
]
