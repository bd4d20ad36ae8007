"""Distribution summaries of simulated outcomes for reporting."""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

import numpy as np
import pandas as pd

from ..models.results import (
    DistributionBin,
    RiskMetrics,
    ScenarioOutcome,
    StatisticsSummary,
)
from .convergence import RunningStatistics

PERCENTILE_LADDER = (1, 5, 10, 25, 50, 75, 90, 95, 99)


def _finite_or_none(value: float) -> float | None:
    return float(value) if np.isfinite(value) else None


def summarise_outcomes(
    outcomes: Sequence[float],
    statistics: RunningStatistics,
    confidence_level: float,
) -> StatisticsSummary:
    """
    Combine the streaming statistics with order statistics of the retained outcomes.

    Moments and the confidence interval come from ``statistics`` so they cover
    every accepted iteration even when the retained sample list is capped.
    """
    base = dict(
        count=statistics.count,
        mean=statistics.mean,
        variance=statistics.variance,
        std_dev=statistics.std_dev,
        standard_error=statistics.standard_error,
        sum_squared_deviation=statistics.sum_squared_deviation,
        confidence_level=confidence_level,
        confidence_interval=statistics.confidence_interval(confidence_level),
    )
    if len(outcomes) == 0:
        return StatisticsSummary(**base)

    series = pd.Series(outcomes, dtype=float)
    percentiles = {f"p{p}": float(series.quantile(p / 100.0)) for p in PERCENTILE_LADDER}
    return StatisticsSummary(
        **base,
        minimum=float(series.min()),
        maximum=float(series.max()),
        median=percentiles["p50"],
        skewness=_finite_or_none(series.skew()) if series.size > 2 else None,
        kurtosis=_finite_or_none(series.kurt()) if series.size > 3 else None,
        percentiles=percentiles,
    )


def build_percentile_table(
    values: Sequence[float],
    *,
    percentiles: Iterable[int] = range(5, 100, 5),
) -> pd.DataFrame:
    """Return a percentile ladder as a dataframe."""
    series = pd.Series(values, dtype=float)
    ladder = [{"percentile": p, "outcome": float(series.quantile(p / 100.0))} for p in percentiles]
    return pd.DataFrame(ladder)


def build_distribution_bins(values: Sequence[float], *, bins: int = 20) -> List[DistributionBin]:
    """Histogram the outcomes into ``bins`` equal-width buckets with cumulative share."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return []
    if float(arr.min()) == float(arr.max()):
        value = float(arr[0])
        return [DistributionBin(lower=value, upper=value, frequency=int(arr.size), cumulative=1.0)]
    counts, edges = np.histogram(arr, bins=bins)
    cumulative = np.cumsum(counts) / arr.size
    return [
        DistributionBin(
            lower=float(edges[idx]),
            upper=float(edges[idx + 1]),
            frequency=int(counts[idx]),
            cumulative=float(min(cumulative[idx], 1.0)),
        )
        for idx in range(len(counts))
    ]


def compute_risk_metrics(values: Sequence[float], *, confidence: float = 0.95) -> RiskMetrics:
    """
    Downside metrics where a loss is a negative outcome.

    ``value_at_risk`` is the loss at the ``1 - confidence`` quantile (zero when
    that quantile is not a loss); ``expected_shortfall`` is the mean loss in
    that tail.
    """
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return RiskMetrics(confidence_level=confidence)
    tail_quantile = float(np.quantile(arr, 1.0 - confidence))
    tail = arr[arr <= tail_quantile]
    tail_mean = float(tail.mean()) if tail.size else tail_quantile
    return RiskMetrics(
        confidence_level=confidence,
        value_at_risk=max(-tail_quantile, 0.0),
        expected_shortfall=max(-tail_mean, 0.0),
        probability_of_loss=float((arr < 0.0).mean()),
        volatility=float(arr.std(ddof=1)) if arr.size > 1 else 0.0,
    )


def build_scenario_outcomes(
    values: Sequence[float],
    *,
    pessimistic: float = 0.10,
    optimistic: float = 0.90,
) -> Dict[str, ScenarioOutcome]:
    """Split outcomes into pessimistic, realistic and optimistic bands by quantile."""
    if not 0.0 < pessimistic < optimistic < 1.0:
        raise ValueError("Scenario thresholds must satisfy 0 < pessimistic < optimistic < 1")
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return {}
    low_cut, high_cut = np.quantile(arr, [pessimistic, optimistic])
    bands = {
        "pessimistic": arr[arr <= low_cut],
        "realistic": arr[(arr > low_cut) & (arr < high_cut)],
        "optimistic": arr[arr >= high_cut],
    }
    outcomes: Dict[str, ScenarioOutcome] = {}
    for label, band in bands.items():
        if band.size == 0:
            continue
        outcomes[label] = ScenarioOutcome(
            probability=float(band.size / arr.size),
            mean_value=float(band.mean()),
            range_min=float(band.min()),
            range_max=float(band.max()),
        )
    return outcomes


__all__ = [
    "PERCENTILE_LADDER",
    "summarise_outcomes",
    "build_percentile_table",
    "build_distribution_bins",
    "compute_risk_metrics",
    "build_scenario_outcomes",
]
