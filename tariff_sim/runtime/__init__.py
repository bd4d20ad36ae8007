"""Background execution of simulation runs."""

from __future__ import annotations

from .channels import ProgressSubscription
from .controller import SimulationController

__all__ = ["SimulationController", "ProgressSubscription"]
