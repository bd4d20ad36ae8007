"""One-factor-at-a-time sensitivity of the outcome to each input parameter."""

from __future__ import annotations

from typing import List, Sequence

import numpy as np

from ..models.results import Sample, SensitivityFactor


def _split_at_median(values: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    median = float(np.median(values))
    above = values > median
    below = ~above
    if not above.any():
        # Mass sits on the median (skewed discrete draws); move the median into the upper half.
        above = values >= median
        below = ~above
    return above, below


def _pearson(x: np.ndarray, y: np.ndarray) -> float:
    if x.size < 2 or np.std(x) == 0 or np.std(y) == 0:
        return 0.0
    value = float(np.corrcoef(x, y)[0, 1])
    return float(np.clip(value, -1.0, 1.0)) if np.isfinite(value) else 0.0


def analyse_sensitivity(
    samples: Sequence[Sample],
    parameter_names: Sequence[str],
) -> List[SensitivityFactor]:
    """
    Score each parameter by the outcome gap between its above- and below-median draws.

    The gap is normalised by the overall outcome standard deviation and clamped
    to ``[0, 1]``. Factors come back ordered by descending score, ties kept in
    parameter order, ranked from 1.
    """
    if not parameter_names:
        return []
    outcomes = np.array([sample.outcome for sample in samples], dtype=float)
    overall_std = float(outcomes.std(ddof=1)) if outcomes.size > 1 else 0.0

    factors: List[SensitivityFactor] = []
    for name in parameter_names:
        values = np.array([sample.scenario[name] for sample in samples], dtype=float)
        score = 0.0
        mean_difference = 0.0
        if values.size >= 2:
            above, below = _split_at_median(values)
            if above.any() and below.any():
                mean_difference = float(outcomes[above].mean() - outcomes[below].mean())
                if overall_std > 0:
                    score = min(1.0, abs(mean_difference) / overall_std)
        factors.append(
            SensitivityFactor(
                parameter_name=name,
                sensitivity_score=score,
                mean_difference=mean_difference,
                correlation=_pearson(values, outcomes),
            )
        )

    ordered = sorted(factors, key=lambda factor: -factor.sensitivity_score)
    return [
        factor.model_copy(update={"rank": position})
        for position, factor in enumerate(ordered, start=1)
    ]


__all__ = ["analyse_sensitivity"]
