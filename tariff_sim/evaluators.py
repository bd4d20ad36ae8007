"""Reference scenario evaluators.

The engine treats evaluators as opaque ``Scenario -> float`` callables. The
implementations here are simple stand-ins used by the command line interface
and tests; they are not calibrated economic models.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from .core.errors import InvalidConfig
from .models.simulation import Scenario, SimulationConfig

Evaluator = Callable[[Scenario], float]


def identity_evaluator(parameter: str) -> Evaluator:
    """Return the value of a single parameter as the outcome."""

    def evaluate(scenario: Scenario) -> float:
        return scenario[parameter]

    return evaluate


def linear_evaluator(coefficients: Mapping[str, float], intercept: float = 0.0) -> Evaluator:
    """Weighted sum of parameters plus ``intercept``; unknown parameters are ignored."""
    weights = {name: float(value) for name, value in coefficients.items()}

    def evaluate(scenario: Scenario) -> float:
        return intercept + sum(weight * scenario[name] for name, weight in weights.items())

    return evaluate


@dataclass(frozen=True)
class TariffImpactEvaluator:
    """
    Change in landed import cost over the horizon caused by a tariff.

    Parameters read from the scenario (missing ones fall back to the
    dataclass defaults): ``tariffRate``, ``exchangeRateShift`` (fractional
    move of the importer's currency), ``passThrough`` (share of the tariff
    absorbed by the supplier) and ``demandElasticity`` (volume response to the
    landed price increase). The outcome is negative for a cost increase.
    """

    annual_import_value: float = 1_000_000.0
    time_horizon_months: int = 12
    tariff_rate: float = 0.0
    exchange_rate_shift: float = 0.0
    pass_through: float = 0.0
    demand_elasticity: float = 0.0

    def _value(self, scenario: Scenario, key: str, default: float) -> float:
        return float(scenario.get(key, default))

    def __call__(self, scenario: Scenario) -> float:
        tariff = self._value(scenario, "tariffRate", self.tariff_rate)
        fx_shift = self._value(scenario, "exchangeRateShift", self.exchange_rate_shift)
        absorbed = self._value(scenario, "passThrough", self.pass_through)
        elasticity = self._value(scenario, "demandElasticity", self.demand_elasticity)

        horizon_value = self.annual_import_value * self.time_horizon_months / 12.0
        effective_tariff = tariff * (1.0 - absorbed)
        price_increase = (1.0 + effective_tariff) * (1.0 + fx_shift) - 1.0
        volume = max(0.0, 1.0 - elasticity * price_increase)
        return -horizon_value * volume * price_increase


EVALUATORS = ("identity", "linear", "tariff_impact")


def build_evaluator(spec: Optional[Mapping[str, Any]], config: SimulationConfig) -> Evaluator:
    """Build an evaluator from a ``{"type": ..., ...}`` mapping (defaults to tariff impact)."""
    options: Dict[str, Any] = dict(spec or {})
    kind = str(options.pop("type", "tariff_impact"))
    if kind == "identity":
        parameter = options.get("parameter") or (config.parameter_names or [None])[0]
        if parameter not in config.parameter_names:
            raise InvalidConfig(f"identity evaluator needs a configured parameter, got {parameter!r}")
        return identity_evaluator(parameter)
    if kind == "linear":
        coefficients = options.get("coefficients") or {name: 1.0 for name in config.parameter_names}
        unknown = sorted(set(coefficients) - set(config.parameter_names))
        if unknown:
            raise InvalidConfig("linear evaluator references unknown parameters: " + ", ".join(unknown))
        return linear_evaluator(coefficients, float(options.get("intercept", 0.0)))
    if kind == "tariff_impact":
        return TariffImpactEvaluator(
            annual_import_value=float(options.get("annual_import_value", 1_000_000.0)),
            time_horizon_months=config.time_horizon_months,
            tariff_rate=float(options.get("tariff_rate", 0.0)),
            exchange_rate_shift=float(options.get("exchange_rate_shift", 0.0)),
            pass_through=float(options.get("pass_through", 0.0)),
            demand_elasticity=float(options.get("demand_elasticity", 0.0)),
        )
    raise InvalidConfig(f"Unknown evaluator type {kind!r}; choose from {', '.join(EVALUATORS)}")


__all__ = [
    "Evaluator",
    "EVALUATORS",
    "identity_evaluator",
    "linear_evaluator",
    "TariffImpactEvaluator",
    "build_evaluator",
]
