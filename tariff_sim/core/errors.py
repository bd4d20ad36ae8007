"""Exception taxonomy for the simulation engine."""

from __future__ import annotations

from typing import Iterable, List, Optional


class SimulationError(Exception):
    """Base class for every error raised by the engine."""


class InvalidConfig(SimulationError, ValueError):
    """Raised when a ``SimulationConfig`` cannot be used to start a run."""

    def __init__(self, problems: Iterable[str] | str) -> None:
        if isinstance(problems, str):
            problems = [problems]
        self.problems: List[str] = list(problems)
        super().__init__("Invalid simulation config: " + "; ".join(self.problems))


class InvalidParameterSpec(InvalidConfig):
    """Raised when a parameter distribution is malformed."""


class InvalidState(SimulationError, RuntimeError):
    """Raised when a control command is not accepted in the current run state."""


class IterationFailure(SimulationError):
    """Runtime failure attributed to a single iteration of a run."""

    kind = "iteration_failure"

    def __init__(self, iteration_index: int, message: str) -> None:
        self.iteration_index = int(iteration_index)
        self.message = message
        super().__init__(f"Iteration {self.iteration_index}: {message}")


class EvaluatorFailure(IterationFailure):
    """The caller supplied evaluator raised while scoring a scenario."""

    kind = "evaluator_failure"


class NumericInstability(IterationFailure):
    """A sampled scenario or an evaluated outcome was NaN or infinite."""

    kind = "numeric_instability"


def failure_for_kind(kind: str) -> Optional[type]:
    """Map a recorded failure kind back to its exception class."""
    for cls in (EvaluatorFailure, NumericInstability):
        if cls.kind == kind:
            return cls
    return None


__all__ = [
    "SimulationError",
    "InvalidConfig",
    "InvalidParameterSpec",
    "InvalidState",
    "IterationFailure",
    "EvaluatorFailure",
    "NumericInstability",
    "failure_for_kind",
]
