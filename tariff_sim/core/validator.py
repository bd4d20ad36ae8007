"""Input validation utilities."""

from __future__ import annotations

import json
import logging
from math import isfinite
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

import yaml
from pydantic import ValidationError

from ..models.simulation import SimulationConfig
from .errors import InvalidConfig
from .sampler import distribution_problems

LOGGER = logging.getLogger(__name__)


def config_problems(config: SimulationConfig) -> List[str]:
    """Collect every semantic problem with ``config``."""
    problems: List[str] = []
    if config.max_iterations <= 0:
        problems.append("maxIterations must be positive")
    if not (0.0 < config.target_confidence_level < 1.0):
        problems.append("targetConfidenceLevel must be in (0, 1)")
    # Zero tolerance converges only on a constant outcome, otherwise runs to max_iterations.
    if not (isfinite(config.convergence_tolerance) and config.convergence_tolerance >= 0):
        problems.append("convergenceTolerance must be a non-negative finite number")
    if config.time_horizon_months < 0:
        problems.append("timeHorizonMonths cannot be negative")
    if config.seed < 0:
        problems.append("seed must be non-negative")
    if not config.parameter_specs:
        problems.append("at least one parameter spec is required")

    seen = set()
    duplicates = set()
    for spec in config.parameter_specs:
        if not spec.name.strip():
            problems.append("parameter names cannot be blank")
        if spec.name in seen:
            duplicates.add(spec.name)
        seen.add(spec.name)
        problems.extend(distribution_problems(spec))
    if duplicates:
        problems.append("duplicate parameter names: " + ", ".join(sorted(duplicates)))
    return problems


def validate_config(config: SimulationConfig) -> SimulationConfig:
    """Raise ``InvalidConfig`` listing every problem, otherwise return ``config``."""
    if not isinstance(config, SimulationConfig):
        raise InvalidConfig(f"expected SimulationConfig, got {type(config).__name__}")
    problems = config_problems(config)
    if problems:
        LOGGER.debug("Rejected config %r: %s", config.name, problems)
        raise InvalidConfig(problems)
    return config


def load_config(data: Union[SimulationConfig, Mapping[str, Any]]) -> SimulationConfig:
    """Build and validate a config from a mapping (wire or snake_case names)."""
    if isinstance(data, SimulationConfig):
        return validate_config(data)
    try:
        config = SimulationConfig.model_validate(dict(data))
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(part) for part in error['loc']) or 'config'}: {error['msg']}"
            for error in exc.errors()
        ]
        raise InvalidConfig(problems) from exc
    return validate_config(config)


def read_config_document(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a YAML or JSON document into a mapping."""
    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidConfig(f"cannot read {file_path}: {exc}") from exc
    try:
        if file_path.suffix.lower() == ".json":
            document = json.loads(text)
        else:
            document = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise InvalidConfig(f"cannot parse {file_path}: {exc}") from exc
    if not isinstance(document, dict):
        raise InvalidConfig(f"{file_path} must contain a mapping at the top level")
    return document


def load_config_file(path: Union[str, Path]) -> SimulationConfig:
    """Load a config file; a top-level ``simulation`` key is unwrapped when present."""
    document = read_config_document(path)
    return load_config(document.get("simulation", document))


__all__ = [
    "config_problems",
    "validate_config",
    "load_config",
    "read_config_document",
    "load_config_file",
]
