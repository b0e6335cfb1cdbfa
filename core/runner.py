"""
Pipeline runner: drives one opaque ``IterativePipeline`` through an explicit
state machine.

    CONFIGURED -> RUNNING -> {CONVERGED | ITERATION_LIMIT_REACHED | FAILED}

Every fault raised by the pipeline (including cancellation) is caught here
and turned into a FAILED outcome carrying a diagnostic string.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import numpy as np

from core.base import IterativePipeline, PipelineInputs
from core.errors import PipelineFault
from core.progress import ProgressReporter

logger = logging.getLogger(__name__)

CANCELLED_DIAGNOSTIC = "Cancelled by user."


class RunState(str, Enum):
    CONFIGURED = "configured"
    RUNNING = "running"
    CONVERGED = "converged"
    ITERATION_LIMIT_REACHED = "iteration_limit_reached"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (RunState.CONVERGED, RunState.ITERATION_LIMIT_REACHED, RunState.FAILED)


@dataclass(frozen=True)
class RunOutcome:
    """Terminal state of one run plus what the host may display."""
    state: RunState
    iterations: int
    metric: float
    diagnostic: str = ""
    output: Optional[np.ndarray] = None
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.state in (RunState.CONVERGED, RunState.ITERATION_LIMIT_REACHED)

    @property
    def report(self) -> str:
        return f"Total number of iterations = {self.iterations} \n Final RMS error = {self.metric:g}"


class PipelineRunner:
    """
    Own one pipeline instance for exactly one run.

    Args:
        pipeline: Pipeline with its parameters already bound.
        inputs: Data and seeds; bound at construction, never changed.
        reporter: Progress front end; progress is pushed after each step.
        is_cancelled: Polled before every step.
        stage: Stage name used when reporting progress.
        message: Progress text; defaults to the pipeline name.
    """

    def __init__(
        self,
        pipeline: IterativePipeline,
        inputs: PipelineInputs,
        reporter: Optional[ProgressReporter] = None,
        is_cancelled: Optional[Callable[[], bool]] = None,
        stage: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        self._pipeline = pipeline
        self._inputs = inputs
        self._reporter = reporter or ProgressReporter()
        self._is_cancelled = is_cancelled or (lambda: False)
        self._stage = stage
        self._message = message or f"{pipeline.name}:"
        self._state = RunState.CONFIGURED

    @property
    def state(self) -> RunState:
        return self._state

    def run(self) -> RunOutcome:
        if self._state is not RunState.CONFIGURED:
            raise RuntimeError(f"Runner for '{self._pipeline.name}' already used (state={self._state.value}).")
        self._state = RunState.RUNNING

        pipeline = self._pipeline
        iterations = 0
        metric = math.nan

        try:
            if self._is_cancelled():
                raise InterruptedError(CANCELLED_DIAGNOSTIC)
            pipeline.initialize(self._inputs)
            # tiled pipelines size their iteration count from the data
            limit = pipeline.max_iterations
            threshold = pipeline.convergence_threshold
            logger.debug("Running %s (max_iterations=%d, threshold=%s)", pipeline.name, limit, threshold)
            converged = False
            for i in range(limit):
                if self._is_cancelled():
                    raise InterruptedError(CANCELLED_DIAGNOSTIC)
                metric = float(pipeline.step())
                iterations = i + 1
                if not math.isfinite(metric):
                    raise PipelineFault(f"Non-finite convergence metric at iteration {iterations}.")
                self._reporter.report(
                    iterations / limit,
                    f"{self._message} iteration {iterations}/{limit}",
                    stage=self._stage,
                    channel="iteration",
                )
                if threshold is not None and metric < threshold:
                    converged = True
                    break

            output = pipeline.result()
            if np.issubdtype(output.dtype, np.floating) and not np.all(np.isfinite(output)):
                raise PipelineFault(f"{pipeline.name} produced non-finite values.")
        except InterruptedError as exc:
            self._state = RunState.FAILED
            logger.info("%s cancelled after %d iterations", pipeline.name, iterations)
            return RunOutcome(RunState.FAILED, iterations, metric, str(exc) or CANCELLED_DIAGNOSTIC, cancelled=True)
        except Exception as exc:
            self._state = RunState.FAILED
            diagnostic = f"{type(exc).__name__}: {exc}"
            logger.warning("%s failed after %d iterations: %s", pipeline.name, iterations, diagnostic)
            return RunOutcome(RunState.FAILED, iterations, metric, diagnostic)

        self._state = RunState.CONVERGED if converged else RunState.ITERATION_LIMIT_REACHED
        logger.info("%s finished: %s after %d iterations (metric=%g)", pipeline.name, self._state.value, iterations, metric)
        return RunOutcome(self._state, iterations, metric, output=output)


__all__ = ["RunState", "RunOutcome", "PipelineRunner", "CANCELLED_DIAGNOSTIC"]
