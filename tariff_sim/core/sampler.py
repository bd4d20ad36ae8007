"""Scenario sampling from configured parameter distributions."""

from __future__ import annotations

from bisect import bisect_right
from itertools import accumulate
from math import cos, isfinite, log, pi, sqrt
from typing import Dict, List, Sequence

from ..models.simulation import (
    DiscreteDistribution,
    NormalDistribution,
    ParameterSpec,
    Scenario,
    UniformDistribution,
)
from .errors import InvalidParameterSpec
from .random_source import RandomSource


def distribution_problems(spec: ParameterSpec) -> List[str]:
    """Return human-readable problems with a parameter's distribution (empty when valid)."""
    dist = spec.distribution
    label = f"parameter {spec.name!r}"
    problems: List[str] = []
    if isinstance(dist, UniformDistribution):
        if not (isfinite(dist.low) and isfinite(dist.high)):
            problems.append(f"{label}: uniform bounds must be finite")
        elif dist.low >= dist.high:
            problems.append(f"{label}: uniform low ({dist.low}) must be below high ({dist.high})")
    elif isinstance(dist, NormalDistribution):
        if not (isfinite(dist.mean) and isfinite(dist.stddev)):
            problems.append(f"{label}: normal mean and stddev must be finite")
        elif dist.stddev < 0:
            problems.append(f"{label}: normal stddev must be non-negative")
    elif isinstance(dist, DiscreteDistribution):
        if not dist.values:
            problems.append(f"{label}: discrete distribution needs at least one value")
        elif len(dist.values) != len(dist.weights):
            problems.append(
                f"{label}: {len(dist.values)} values but {len(dist.weights)} weights"
            )
        elif not all(isfinite(value) for value in dist.values):
            problems.append(f"{label}: discrete values must be finite")
        elif not all(isfinite(weight) and weight >= 0 for weight in dist.weights):
            problems.append(f"{label}: discrete weights must be finite and non-negative")
        elif dist.total_weight <= 0:
            problems.append(f"{label}: discrete weights sum to zero")
    else:  # pragma: no cover - guarded by the discriminated union
        problems.append(f"{label}: unsupported distribution {type(dist).__name__}")
    return problems


class ScenarioSampler:
    """Draw one scenario per iteration, consuming draws in parameter order."""

    def __init__(self, specs: Sequence[ParameterSpec]) -> None:
        problems: List[str] = []
        for spec in specs:
            problems.extend(distribution_problems(spec))
        if problems:
            raise InvalidParameterSpec(problems)
        self.specs = list(specs)
        self._cumulative: Dict[str, List[float]] = {}
        for spec in self.specs:
            if isinstance(spec.distribution, DiscreteDistribution):
                self._cumulative[spec.name] = list(accumulate(spec.distribution.weights))

    def sample(self, random_source: RandomSource) -> Scenario:
        scenario: Scenario = {}
        for spec in self.specs:
            scenario[spec.name] = self._draw(spec, random_source)
        return scenario

    def _draw(self, spec: ParameterSpec, random_source: RandomSource) -> float:
        dist = spec.distribution
        if isinstance(dist, UniformDistribution):
            return dist.low + (dist.high - dist.low) * random_source.next()
        if isinstance(dist, NormalDistribution):
            # Box-Muller; 1 - u keeps the log argument in (0, 1].
            u1 = random_source.next()
            u2 = random_source.next()
            z = sqrt(-2.0 * log(1.0 - u1)) * cos(2.0 * pi * u2)
            return dist.mean + dist.stddev * z
        cumulative = self._cumulative[spec.name]
        target = random_source.next() * cumulative[-1]
        index = min(bisect_right(cumulative, target), len(dist.values) - 1)
        return float(dist.values[index])


__all__ = ["ScenarioSampler", "distribution_problems"]
