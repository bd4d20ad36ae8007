"""Background execution and control of a single Monte Carlo run."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import Future
from dataclasses import dataclass
from math import isfinite
from typing import Callable, Iterable, List, Optional, Tuple

from ..config import EngineSettings
from ..core.convergence import ConvergenceTracker
from ..core.errors import (
    EvaluatorFailure,
    InvalidState,
    IterationFailure,
    NumericInstability,
)
from ..core.random_source import RandomSource
from ..core.sampler import ScenarioSampler
from ..core.sensitivity import analyse_sensitivity
from ..core.summary import (
    build_distribution_bins,
    build_scenario_outcomes,
    compute_risk_metrics,
    summarise_outcomes,
)
from ..core.validator import load_config
from ..models.results import (
    ProgressSnapshot,
    RunError,
    RunHandle,
    RunState,
    Sample,
    SimulationResult,
    StopReason,
)
from ..models.simulation import Scenario, SimulationConfig
from .channels import Command, CommandKind, ControlChannel, ProgressChannel, ProgressSubscription

LOGGER = logging.getLogger(__name__)

ScenarioEvaluator = Callable[[Scenario], float]
ResultListener = Callable[[SimulationResult], None]


@dataclass
class _LoopControl:
    """Command state private to the background task."""

    paused: bool = False
    step_remaining: Optional[int] = None
    stop: bool = False

    def apply(self, commands: Iterable[Command]) -> None:
        commands = list(commands)
        if any(command.kind is CommandKind.STOP for command in commands):
            self.stop = True
            return
        for command in commands:
            if command.kind is CommandKind.PAUSE:
                self.paused = True
                self.step_remaining = None
            elif command.kind is CommandKind.RESUME:
                self.paused = False
                self.step_remaining = None
            elif command.kind is CommandKind.STEP:
                self.paused = False
                self.step_remaining = command.steps


class _ActiveClock:
    """Wall clock that excludes time spent paused."""

    def __init__(self) -> None:
        self._accumulated = 0.0
        self._since: Optional[float] = time.perf_counter()

    def pause(self) -> None:
        if self._since is not None:
            self._accumulated += time.perf_counter() - self._since
            self._since = None

    def resume(self) -> None:
        if self._since is None:
            self._since = time.perf_counter()

    def elapsed_ms(self) -> int:
        running = time.perf_counter() - self._since if self._since is not None else 0.0
        return int((self._accumulated + running) * 1000)


class SimulationController:
    """Drive one Monte Carlo run on a background thread.

    The controller owns the run state machine
    (``idle -> running <-> paused -> complete``, ``stopped`` from running or
    paused). Commands are validated synchronously against the caller-visible
    state and then queued on the control channel; the background thread
    applies them at the next iteration boundary. Samples and running
    statistics are only ever touched by the background thread; callers see
    copies through progress snapshots and the final result.
    """

    def __init__(
        self,
        evaluator: ScenarioEvaluator,
        *,
        settings: Optional[EngineSettings] = None,
        run_id: Optional[str] = None,
        result_listeners: Iterable[ResultListener] = (),
    ) -> None:
        if not callable(evaluator):
            raise TypeError("evaluator must be callable")
        self.evaluator = evaluator
        self.settings = settings or EngineSettings()
        self.run_id = run_id or uuid.uuid4().hex
        self.config: Optional[SimulationConfig] = None
        self._state = RunState.IDLE
        self._stop_requested = False
        self._condition = threading.Condition()
        self._control = ControlChannel()
        self._progress = ProgressChannel()
        self._future: "Future[SimulationResult]" = Future()
        self._thread: Optional[threading.Thread] = None
        for listener in result_listeners:
            self.add_result_listener(listener)

    # ------------------------------------------------------------------ status
    @property
    def state(self) -> RunState:
        with self._condition:
            return self._state

    @property
    def handle(self) -> RunHandle:
        return RunHandle(run_id=self.run_id)

    @property
    def latest_snapshot(self) -> Optional[ProgressSnapshot]:
        return self._progress.latest

    @property
    def done(self) -> bool:
        return self._future.done()

    def wait_for_state(self, *states: RunState, timeout: Optional[float] = None) -> RunState:
        """Block until the run enters one of ``states`` (or a terminal state)."""
        wanted = set(states)
        with self._condition:
            reached = self._condition.wait_for(
                lambda: self._state in wanted or self._state.is_terminal,
                timeout=timeout,
            )
            if not reached:
                raise TimeoutError(
                    f"Run {self.run_id} still {self._state.value} after {timeout}s"
                )
            return self._state

    # ------------------------------------------------------------------ control
    def start(self, config: SimulationConfig, *, start_paused: bool = False) -> RunHandle:
        """Validate ``config`` and launch the background task."""
        with self._condition:
            if self._state is not RunState.IDLE:
                raise InvalidState(f"Run {self.run_id} has already been started")
            config = load_config(config)
            sampler = ScenarioSampler(config.parameter_specs)
            self.config = config
            if start_paused:
                self._control.send(Command(CommandKind.PAUSE))
                self._state = RunState.PAUSED
            else:
                self._state = RunState.RUNNING
            self._condition.notify_all()
            self._thread = threading.Thread(
                target=self._run,
                args=(config, sampler),
                name=f"simulation-{self.run_id[:8]}",
                daemon=True,
            )
            self._thread.start()
        LOGGER.info(
            "Started run %s (%s): %d parameter(s), max %d iterations, seed %d",
            self.run_id,
            config.name,
            len(config.parameter_specs),
            config.max_iterations,
            config.seed,
        )
        return self.handle

    def pause(self) -> None:
        with self._condition:
            self._require(RunState.RUNNING, action="pause")
            self._state = RunState.PAUSED
            self._condition.notify_all()
            self._control.send(Command(CommandKind.PAUSE))
        LOGGER.info("Pause requested for run %s", self.run_id)

    def resume(self) -> None:
        with self._condition:
            self._require(RunState.PAUSED, action="resume")
            self._state = RunState.RUNNING
            self._condition.notify_all()
            self._control.send(Command(CommandKind.RESUME))
        LOGGER.info("Resume requested for run %s", self.run_id)

    def step(self, n: int) -> None:
        """Run exactly ``n`` more iterations, then pause (or complete if the budget ends first)."""
        if int(n) < 1:
            raise ValueError(f"step count must be at least 1, got {n}")
        with self._condition:
            self._require(RunState.RUNNING, RunState.PAUSED, action="step")
            self._state = RunState.RUNNING
            self._condition.notify_all()
            self._control.send(Command(CommandKind.STEP, steps=int(n)))
        LOGGER.info("Step of %d iteration(s) requested for run %s", n, self.run_id)

    def stop(self) -> None:
        """Request termination; a no-op once the run is stopping or finished."""
        with self._condition:
            if self._state is RunState.IDLE:
                raise InvalidState(f"Run {self.run_id} has not been started")
            if self._state.is_terminal or self._stop_requested:
                return
            self._stop_requested = True
            self._control.send(Command(CommandKind.STOP))
        LOGGER.info("Stop requested for run %s", self.run_id)

    def _require(self, *allowed: RunState, action: str) -> None:
        if self._stop_requested and not self._state.is_terminal:
            raise InvalidState(f"Cannot {action} run {self.run_id}: stop already requested")
        if self._state not in allowed:
            raise InvalidState(
                f"Cannot {action} run {self.run_id} while {self._state.value}"
            )

    # ------------------------------------------------------------------ outputs
    def subscribe_progress(self) -> ProgressSubscription:
        return self._progress.subscribe()

    def await_result(self, timeout: Optional[float] = None) -> SimulationResult:
        if self.state is RunState.IDLE:
            raise InvalidState(f"Run {self.run_id} has not been started")
        return self._future.result(timeout=timeout)

    def add_result_listener(self, listener: ResultListener) -> None:
        """Call ``listener`` with the terminal result (immediately if already finished)."""
        self._future.add_done_callback(lambda future: self._notify(listener, future))

    def _notify(self, listener: ResultListener, future: "Future[SimulationResult]") -> None:
        if future.exception() is not None:
            return
        try:
            listener(future.result())
        except Exception:
            LOGGER.exception("Result listener failed for run %s", self.run_id)

    # ------------------------------------------------------------------ worker
    def _set_state(self, state: RunState) -> None:
        with self._condition:
            if self._state is not state:
                self._state = state
                self._condition.notify_all()

    def _enter_pause(self, control: _LoopControl) -> bool:
        """Publish the paused state unless commands arrived meanwhile.

        Callers queue commands while holding the condition, so checking the
        channel and flipping the state here is atomic with respect to them.
        Returns ``False`` after applying late commands.
        """
        with self._condition:
            pending = self._control.receive()
            if pending:
                control.apply(pending)
                return False
            if self._state is not RunState.PAUSED:
                self._state = RunState.PAUSED
                self._condition.notify_all()
        return True

    def _run(self, config: SimulationConfig, sampler: ScenarioSampler) -> None:
        try:
            result = self._execute(config, sampler)
        except BaseException as exc:
            # Delivered to await_result; the future must resolve whatever escaped.
            LOGGER.exception("Run %s aborted unexpectedly", self.run_id)
            self._set_state(RunState.STOPPED)
            self._progress.close()
            self._future.set_exception(exc)
            return
        self._progress.close()
        self._set_state(result.state)
        self._future.set_result(result)

    def _execute(self, config: SimulationConfig, sampler: ScenarioSampler) -> SimulationResult:
        settings = self.settings
        random_source = RandomSource(config.seed)
        tracker = ConvergenceTracker(
            config.target_confidence_level,
            min_samples=settings.min_convergence_samples,
        )
        samples: List[Sample] = []
        truncated = False
        control = _LoopControl()
        clock = _ActiveClock()
        iterations = 0
        last_emitted = 0
        stop_reason: Optional[StopReason] = None
        failure: Optional[IterationFailure] = None

        def emit(state: RunState) -> None:
            nonlocal last_emitted
            if iterations <= last_emitted:
                return
            last_emitted = iterations
            self._progress.publish(self._snapshot(config, tracker, clock, iterations, state))

        while True:
            control.apply(self._control.receive())
            while control.paused and not control.stop:
                if not self._enter_pause(control):
                    continue
                emit(RunState.PAUSED)
                clock.pause()
                control.apply(self._control.receive(block=True))
                clock.resume()
            if control.stop:
                stop_reason = StopReason.STOPPED
                break
            if iterations % settings.progress_interval == 0:
                emit(RunState.RUNNING)

            try:
                sample = self._iterate(sampler, random_source, iterations)
            except IterationFailure as exc:
                failure = exc
                stop_reason = (
                    StopReason.NUMERIC_INSTABILITY
                    if isinstance(exc, NumericInstability)
                    else StopReason.EVALUATOR_FAILURE
                )
                break

            tracker.update(sample.outcome)
            if settings.max_retained_samples is None or len(samples) < settings.max_retained_samples:
                samples.append(sample)
            else:
                truncated = True
            iterations += 1

            stepping = control.step_remaining is not None
            if stepping:
                control.step_remaining -= 1
                if control.step_remaining <= 0:
                    control.paused = True
                    control.step_remaining = None

            # A stop queued during this iteration wins over completion.
            control.apply(self._control.receive())
            if control.stop:
                stop_reason = StopReason.STOPPED
                break
            if iterations >= config.max_iterations:
                stop_reason = StopReason.MAX_ITERATIONS
                break
            # Stepping runs exactly the requested iterations; convergence waits for a resume.
            if (
                not stepping
                and iterations % settings.convergence_check_interval == 0
                and tracker.has_converged(config.convergence_tolerance)
            ):
                stop_reason = StopReason.CONVERGED
                break

        clock.pause()
        completed = stop_reason in (StopReason.MAX_ITERATIONS, StopReason.CONVERGED)
        terminal = RunState.COMPLETE if completed else RunState.STOPPED
        converged = completed and tracker.has_converged(config.convergence_tolerance)
        emit(terminal)

        if failure is not None:
            LOGGER.warning("Run %s stopped by %s: %s", self.run_id, failure.kind, failure)
        LOGGER.info(
            "Run %s %s after %d iteration(s) (%s)",
            self.run_id,
            terminal.value,
            iterations,
            stop_reason.value,
        )
        return self._build_result(
            config,
            tracker,
            samples,
            truncated=truncated,
            state=terminal,
            stop_reason=stop_reason,
            converged=converged,
            failure=failure,
            elapsed_ms=clock.elapsed_ms(),
        )

    def _iterate(self, sampler: ScenarioSampler, random_source: RandomSource, index: int) -> Sample:
        scenario = sampler.sample(random_source)
        bad = [name for name, value in scenario.items() if not isfinite(value)]
        if bad:
            raise NumericInstability(index, f"non-finite scenario value(s) for {', '.join(bad)}")
        try:
            outcome = float(self.evaluator(dict(scenario)))
        except KeyboardInterrupt:
            raise
        except BaseException as exc:
            # SystemExit or GeneratorExit from an evaluator only ends this run.
            LOGGER.debug("Evaluator raised on iteration %d", index, exc_info=True)
            raise EvaluatorFailure(index, f"{type(exc).__name__}: {exc}") from exc
        if not isfinite(outcome):
            raise NumericInstability(index, f"evaluator returned non-finite outcome {outcome}")
        return Sample(iteration_index=index, scenario=scenario, outcome=outcome)

    def _snapshot(
        self,
        config: SimulationConfig,
        tracker: ConvergenceTracker,
        clock: _ActiveClock,
        iterations: int,
        state: RunState,
    ) -> ProgressSnapshot:
        elapsed_ms = clock.elapsed_ms()
        remaining: Optional[int] = None
        if iterations > 0:
            remaining = int(elapsed_ms / iterations * max(config.max_iterations - iterations, 0))
        interval: Tuple[float, float] = tracker.confidence_interval()
        return ProgressSnapshot(
            run_id=self.run_id,
            iterations=iterations,
            confidence_interval=interval,
            elapsed_ms=elapsed_ms,
            estimated_remaining_ms=remaining,
            state=state,
            mean=tracker.statistics.mean,
            std_dev=tracker.statistics.std_dev,
        )

    def _build_result(
        self,
        config: SimulationConfig,
        tracker: ConvergenceTracker,
        samples: List[Sample],
        *,
        truncated: bool,
        state: RunState,
        stop_reason: StopReason,
        converged: bool,
        failure: Optional[IterationFailure],
        elapsed_ms: int,
    ) -> SimulationResult:
        outcomes = [sample.outcome for sample in samples]
        statistics = tracker.statistics.copy()
        sensitivity = []
        if state is RunState.COMPLETE:
            sensitivity = analyse_sensitivity(samples, config.parameter_names)
        return SimulationResult(
            run_id=self.run_id,
            config_name=config.name,
            state=state,
            stop_reason=stop_reason,
            final_statistics=summarise_outcomes(
                outcomes, statistics, config.target_confidence_level
            ),
            samples=samples,
            samples_truncated=truncated,
            sensitivity_factors=sensitivity,
            convergence_achieved=converged,
            iterations_required=statistics.count,
            elapsed_ms=elapsed_ms,
            error=RunError.from_exception(failure) if failure is not None else None,
            distribution=build_distribution_bins(outcomes),
            risk_metrics=compute_risk_metrics(outcomes, confidence=config.target_confidence_level)
            if outcomes
            else None,
            scenario_outcomes=build_scenario_outcomes(outcomes),
        )


__all__ = ["SimulationController", "ScenarioEvaluator", "ResultListener"]
