"""Controllable Monte Carlo simulation engine for tariff impact analysis."""

from __future__ import annotations

from .config import EngineSettings
from .core.errors import (
    EvaluatorFailure,
    InvalidConfig,
    InvalidParameterSpec,
    InvalidState,
    NumericInstability,
    SimulationError,
)
from .engine import SimulationEngine
from .models.results import (
    ProgressSnapshot,
    RunHandle,
    RunState,
    Sample,
    SensitivityFactor,
    SimulationResult,
    StopReason,
)
from .models.simulation import (
    DiscreteDistribution,
    NormalDistribution,
    ParameterSpec,
    SimulationConfig,
    UniformDistribution,
)
from .runtime.controller import SimulationController

__version__ = "0.1.0"

__all__ = [
    "EngineSettings",
    "SimulationEngine",
    "SimulationController",
    "SimulationConfig",
    "ParameterSpec",
    "UniformDistribution",
    "NormalDistribution",
    "DiscreteDistribution",
    "RunHandle",
    "RunState",
    "StopReason",
    "ProgressSnapshot",
    "Sample",
    "SensitivityFactor",
    "SimulationResult",
    "SimulationError",
    "InvalidConfig",
    "InvalidParameterSpec",
    "InvalidState",
    "EvaluatorFailure",
    "NumericInstability",
]
