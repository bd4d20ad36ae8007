"""Simulation configuration models."""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Scenario = Dict[str, float]


class _WireModel(BaseModel):
    """Immutable model that accepts both snake_case and camelCase field names."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="forbid",
    )


class UniformDistribution(_WireModel):
    """Continuous uniform draw on ``[low, high)``."""

    kind: Literal["uniform"] = "uniform"
    low: float = Field(..., description="Inclusive lower bound")
    high: float = Field(..., description="Exclusive upper bound")


class NormalDistribution(_WireModel):
    """Gaussian draw with the given mean and standard deviation."""

    kind: Literal["normal"] = "normal"
    mean: float = Field(..., description="Distribution mean")
    stddev: float = Field(..., description="Standard deviation (zero gives a constant)")


class DiscreteDistribution(_WireModel):
    """Weighted choice among a finite set of values."""

    kind: Literal["discrete"] = "discrete"
    values: List[float] = Field(..., description="Candidate values")
    weights: List[float] = Field(..., description="Relative weight of each value")

    @property
    def total_weight(self) -> float:
        return float(sum(self.weights))


Distribution = Annotated[
    Union[UniformDistribution, NormalDistribution, DiscreteDistribution],
    Field(discriminator="kind"),
]


class ParameterSpec(_WireModel):
    """One perturbed input of the tariff model and the distribution it is drawn from."""

    name: str = Field(..., description="Parameter name, unique within a config")
    distribution: Distribution
    description: Optional[str] = Field(None, description="Human-readable description")

    @classmethod
    def uniform(cls, name: str, low: float, high: float, **kwargs: Any) -> "ParameterSpec":
        return cls(name=name, distribution=UniformDistribution(low=low, high=high), **kwargs)

    @classmethod
    def normal(cls, name: str, mean: float, stddev: float, **kwargs: Any) -> "ParameterSpec":
        return cls(name=name, distribution=NormalDistribution(mean=mean, stddev=stddev), **kwargs)

    @classmethod
    def discrete(cls, name: str, weighted_values: Mapping[float, float], **kwargs: Any) -> "ParameterSpec":
        """Build a discrete parameter from a ``{value: weight}`` mapping."""
        values = [float(value) for value in weighted_values]
        weights = [float(weight) for weight in weighted_values.values()]
        return cls(
            name=name,
            distribution=DiscreteDistribution(values=values, weights=weights),
            **kwargs,
        )


class SimulationConfig(_WireModel):
    """Immutable configuration of a single Monte Carlo run.

    Semantic checks (bounds, uniqueness, distribution consistency) are applied
    by :func:`tariff_sim.core.validator.validate_config` when a run starts so
    that a malformed config is reported as ``InvalidConfig`` rather than at
    construction time.
    """

    name: str = Field("tariff_impact", description="Label used in logs and payloads")
    time_horizon_months: int = Field(12, description="Horizon handed to evaluators")
    max_iterations: int = Field(10_000, description="Hard iteration budget")
    target_confidence_level: float = Field(0.95, description="Confidence level in (0, 1)")
    convergence_tolerance: float = Field(
        0.01,
        description="Relative half-width of the confidence interval that counts as converged",
    )
    parameter_specs: List[ParameterSpec] = Field(default_factory=list)
    seed: int = Field(42, description="Seed for the reproducible random stream")
    metadata: Dict[str, str] = Field(default_factory=dict)

    @property
    def parameter_names(self) -> List[str]:
        return [spec.name for spec in self.parameter_specs]

    def to_metadata(self) -> Dict[str, Any]:
        """Serialise into a plain mapping using wire (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, Any]) -> "SimulationConfig":
        """Rehydrate a configuration from a mapping produced by :meth:`to_metadata`."""
        return cls.model_validate(dict(metadata))


__all__ = [
    "Scenario",
    "UniformDistribution",
    "NormalDistribution",
    "DiscreteDistribution",
    "Distribution",
    "ParameterSpec",
    "SimulationConfig",
]
