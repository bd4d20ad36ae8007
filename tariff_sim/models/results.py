"""Result data models for simulation runs."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer

from ..core.errors import IterationFailure, failure_for_kind


class RunState(str, Enum):
    """Lifecycle states of a simulation run."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETE = "complete"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.COMPLETE, RunState.STOPPED)


class StopReason(str, Enum):
    """Why a run reached its terminal state."""

    CONVERGED = "converged"
    MAX_ITERATIONS = "max_iterations"
    STOPPED = "stopped"
    EVALUATOR_FAILURE = "evaluator_failure"
    NUMERIC_INSTABILITY = "numeric_instability"


@dataclass(frozen=True)
class RunHandle:
    """Opaque reference to a run started through the engine."""

    run_id: str


@dataclass(frozen=True)
class ProgressSnapshot:
    """
    Point-in-time view of a running simulation.

    Snapshots are copies taken by the background task at iteration
    boundaries, so consumers can hold on to them without synchronisation.
    """

    run_id: str
    iterations: int
    confidence_interval: Tuple[float, float]
    elapsed_ms: int
    estimated_remaining_ms: Optional[int]
    state: RunState
    mean: float = 0.0
    std_dev: float = 0.0
    timestamp: float = field(default_factory=time.time)


def _freeze_scenario(scenario: Dict[str, float]) -> Mapping[str, float]:
    return MappingProxyType(scenario)


def _thaw_scenario(scenario: Mapping[str, float]) -> Dict[str, float]:
    return dict(scenario)


# Read-only view over the validated copy; dumps back to a plain dict.
FrozenScenario = Annotated[
    Dict[str, float],
    AfterValidator(_freeze_scenario),
    PlainSerializer(_thaw_scenario, return_type=Dict[str, float]),
]


class Sample(BaseModel):
    """One evaluated scenario."""

    model_config = ConfigDict(frozen=True)

    iteration_index: int = Field(..., ge=0, description="0-based iteration that produced the sample")
    scenario: FrozenScenario = Field(..., description="Sampled parameter values in config order")
    outcome: float = Field(..., description="Evaluator output for the scenario")


class StatisticsSummary(BaseModel):
    """Summary statistics of the outcomes collected by a run."""

    model_config = ConfigDict(frozen=True)

    count: int = 0
    mean: float = 0.0
    variance: float = 0.0
    std_dev: float = 0.0
    standard_error: float = 0.0
    sum_squared_deviation: float = 0.0
    confidence_level: float = 0.95
    confidence_interval: Tuple[float, float] = (0.0, 0.0)
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    median: Optional[float] = None
    skewness: Optional[float] = None
    kurtosis: Optional[float] = None
    percentiles: Dict[str, float] = Field(default_factory=dict)

    @property
    def half_width(self) -> float:
        lower, upper = self.confidence_interval
        return (upper - lower) / 2.0


class SensitivityFactor(BaseModel):
    """How strongly one input parameter drives the outcome."""

    model_config = ConfigDict(frozen=True)

    parameter_name: str
    sensitivity_score: float = Field(..., ge=0.0, le=1.0)
    mean_difference: float = Field(0.0, description="Outcome mean above minus below the median")
    correlation: float = Field(0.0, ge=-1.0, le=1.0, description="Pearson correlation with the outcome")
    rank: int = Field(0, ge=0)


class DistributionBin(BaseModel):
    """Histogram bucket of the outcome distribution."""

    model_config = ConfigDict(frozen=True)

    lower: float
    upper: float
    frequency: int
    cumulative: float = Field(..., ge=0.0, le=1.0)


class RiskMetrics(BaseModel):
    """Downside measures of the outcome distribution (losses are negative outcomes)."""

    model_config = ConfigDict(frozen=True)

    confidence_level: float = 0.95
    value_at_risk: float = 0.0
    expected_shortfall: float = 0.0
    probability_of_loss: float = 0.0
    volatility: float = 0.0


class ScenarioOutcome(BaseModel):
    """Outcome band (pessimistic / realistic / optimistic)."""

    model_config = ConfigDict(frozen=True)

    probability: float
    mean_value: float
    range_min: float
    range_max: float


class RunError(BaseModel):
    """Record of the runtime failure that stopped a run."""

    model_config = ConfigDict(frozen=True)

    kind: str
    iteration_index: int
    message: str

    @classmethod
    def from_exception(cls, exc: IterationFailure) -> "RunError":
        return cls(kind=exc.kind, iteration_index=exc.iteration_index, message=exc.message)

    def to_exception(self) -> IterationFailure:
        failure_cls = failure_for_kind(self.kind) or IterationFailure
        return failure_cls(self.iteration_index, self.message)


class SimulationResult(BaseModel):
    """Terminal output of a run, produced exactly once."""

    run_id: str
    config_name: str = ""
    state: RunState
    stop_reason: StopReason
    final_statistics: StatisticsSummary = Field(default_factory=StatisticsSummary)
    samples: List[Sample] = Field(default_factory=list)
    samples_truncated: bool = False
    sensitivity_factors: List[SensitivityFactor] = Field(default_factory=list)
    convergence_achieved: bool = False
    iterations_required: int = 0
    elapsed_ms: int = 0
    error: Optional[RunError] = None
    distribution: List[DistributionBin] = Field(default_factory=list)
    risk_metrics: Optional[RiskMetrics] = None
    scenario_outcomes: Dict[str, ScenarioOutcome] = Field(default_factory=dict)

    def raise_for_error(self) -> None:
        """Re-raise the failure that stopped the run, if any."""
        if self.error is not None:
            raise self.error.to_exception()

    def sensitivity_for(self, parameter_name: str) -> Optional[SensitivityFactor]:
        for factor in self.sensitivity_factors:
            if factor.parameter_name == parameter_name:
                return factor
        return None

    def samples_frame(self) -> pd.DataFrame:
        """Return retained samples as a dataframe, one column per parameter."""
        if not self.samples:
            return pd.DataFrame(columns=["iteration_index", "outcome"])
        rows = [
            {"iteration_index": sample.iteration_index, **sample.scenario, "outcome": sample.outcome}
            for sample in self.samples
        ]
        return pd.DataFrame(rows)

    def summary_frame(self) -> pd.DataFrame:
        """Return a single-row table of the headline statistics."""
        stats = self.final_statistics
        lower, upper = stats.confidence_interval
        row: Dict[str, Any] = {
            "run_id": self.run_id,
            "state": self.state.value,
            "stop_reason": self.stop_reason.value,
            "iterations": self.iterations_required,
            "mean": stats.mean,
            "std_dev": stats.std_dev,
            "ci_lower": lower,
            "ci_upper": upper,
            "converged": self.convergence_achieved,
        }
        if self.risk_metrics is not None:
            row["value_at_risk"] = self.risk_metrics.value_at_risk
            row["probability_of_loss"] = self.risk_metrics.probability_of_loss
        return pd.DataFrame([row])

    def percentile_table(self) -> pd.DataFrame:
        """Percentile ladder of the final statistics, one row per level."""
        percentiles = self.final_statistics.percentiles
        return pd.DataFrame(
            [{"percentile": key, "outcome": value} for key, value in percentiles.items()],
            columns=["percentile", "outcome"],
        )

    def to_payload(self, *, include_samples: bool = False) -> Dict[str, Any]:
        """Plain mapping handed to downstream notification or reporting collaborators."""
        exclude = None if include_samples else {"samples"}
        return self.model_dump(mode="json", exclude=exclude)


__all__ = [
    "RunState",
    "StopReason",
    "RunHandle",
    "ProgressSnapshot",
    "Sample",
    "StatisticsSummary",
    "SensitivityFactor",
    "DistributionBin",
    "RiskMetrics",
    "ScenarioOutcome",
    "RunError",
    "SimulationResult",
]
