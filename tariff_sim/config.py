"""Engine runtime settings sourced from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .core.errors import InvalidConfig

ENV_PREFIX = "TARIFF_SIM_"

LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _env_int(environ: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = environ.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise InvalidConfig(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class EngineSettings:
    """Tuning knobs shared by every run started from one engine."""

    progress_interval: int = 100
    convergence_check_interval: int = 100
    min_convergence_samples: int = 30
    max_retained_samples: Optional[int] = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        problems = []
        if self.progress_interval < 1:
            problems.append("progress_interval must be at least 1")
        if self.convergence_check_interval < 1:
            problems.append("convergence_check_interval must be at least 1")
        if self.min_convergence_samples < 2:
            problems.append("min_convergence_samples must be at least 2")
        if self.max_retained_samples is not None and self.max_retained_samples < 0:
            problems.append("max_retained_samples cannot be negative")
        if self.log_level.upper() not in LOG_LEVELS:
            problems.append(f"Unsupported log level: {self.log_level}")
        if problems:
            raise InvalidConfig(problems)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        """Build settings from ``TARIFF_SIM_*`` variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        return cls(
            progress_interval=_env_int(env, "PROGRESS_INTERVAL", cls.progress_interval),
            convergence_check_interval=_env_int(
                env, "CONVERGENCE_CHECK_INTERVAL", cls.convergence_check_interval
            ),
            min_convergence_samples=_env_int(
                env, "MIN_CONVERGENCE_SAMPLES", cls.min_convergence_samples
            ),
            max_retained_samples=_env_int(env, "MAX_RETAINED_SAMPLES", None),
            log_level=env.get(ENV_PREFIX + "LOG_LEVEL", cls.log_level).upper(),
        )


__all__ = ["EngineSettings", "ENV_PREFIX"]
