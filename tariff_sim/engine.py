"""High-level orchestration of simulation runs behind opaque handles."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional

from .config import EngineSettings
from .core.errors import InvalidState
from .models.results import ProgressSnapshot, RunHandle, RunState, SimulationResult
from .models.simulation import SimulationConfig
from .runtime.channels import ProgressSubscription
from .runtime.controller import ResultListener, ScenarioEvaluator, SimulationController

LOGGER = logging.getLogger(__name__)


class SimulationEngine:
    """Primary entry point for starting and controlling Monte Carlo runs.

    Each ``start`` creates a dedicated :class:`SimulationController` with its
    own background thread. Callers interact through :class:`RunHandle` values
    only; unknown handles raise ``InvalidState``.
    """

    def __init__(
        self,
        evaluator: Optional[ScenarioEvaluator] = None,
        *,
        settings: Optional[EngineSettings] = None,
        result_listeners: Iterable[ResultListener] = (),
    ) -> None:
        self.default_evaluator = evaluator
        self.settings = settings or EngineSettings.from_env()
        self.result_listeners: List[ResultListener] = list(result_listeners)
        self._runs: Dict[str, SimulationController] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ runs
    def start(
        self,
        config: SimulationConfig,
        evaluator: Optional[ScenarioEvaluator] = None,
        *,
        start_paused: bool = False,
    ) -> RunHandle:
        """Validate ``config`` and launch a new run, returning its handle."""
        scorer = evaluator or self.default_evaluator
        if scorer is None:
            raise ValueError("An evaluator is required (pass one here or to the engine).")
        controller = SimulationController(
            scorer,
            settings=self.settings,
            result_listeners=self.result_listeners,
        )
        handle = controller.start(config, start_paused=start_paused)
        with self._lock:
            self._runs[handle.run_id] = controller
        return handle

    def controller(self, handle: RunHandle) -> SimulationController:
        with self._lock:
            controller = self._runs.get(handle.run_id)
        if controller is None:
            raise InvalidState(f"Unknown run handle: {handle.run_id}")
        return controller

    def runs(self) -> List[RunHandle]:
        with self._lock:
            return [RunHandle(run_id=run_id) for run_id in self._runs]

    def state(self, handle: RunHandle) -> RunState:
        return self.controller(handle).state

    # ------------------------------------------------------------------ control
    def pause(self, handle: RunHandle) -> None:
        self.controller(handle).pause()

    def resume(self, handle: RunHandle) -> None:
        self.controller(handle).resume()

    def step(self, handle: RunHandle, n: int) -> None:
        self.controller(handle).step(n)

    def stop(self, handle: RunHandle) -> None:
        self.controller(handle).stop()

    # ------------------------------------------------------------------ outputs
    def subscribe_progress(self, handle: RunHandle) -> ProgressSubscription:
        return self.controller(handle).subscribe_progress()

    def latest_progress(self, handle: RunHandle) -> Optional[ProgressSnapshot]:
        return self.controller(handle).latest_snapshot

    def await_result(self, handle: RunHandle, timeout: Optional[float] = None) -> SimulationResult:
        return self.controller(handle).await_result(timeout=timeout)

    # ------------------------------------------------------------------ cleanup
    def discard(self, handle: RunHandle) -> None:
        """Stop the run if still active and forget its handle."""
        with self._lock:
            controller = self._runs.pop(handle.run_id, None)
        if controller is None:
            return
        if not controller.state.is_terminal:
            controller.stop()
        LOGGER.debug("Discarded run %s", handle.run_id)

    def shutdown(self, *, wait: bool = False, timeout: Optional[float] = None) -> None:
        """Stop every active run; optionally wait for their results."""
        with self._lock:
            controllers = list(self._runs.values())
            self._runs.clear()
        for controller in controllers:
            if not controller.state.is_terminal:
                controller.stop()
        if wait:
            for controller in controllers:
                controller.await_result(timeout=timeout)


__all__ = ["SimulationEngine"]
