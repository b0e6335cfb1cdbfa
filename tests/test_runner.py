import math
import unittest

import numpy as np

from core.base import IterativePipeline, PipelineInputs
from core.errors import PipelineFault
from core.progress import ProgressBus, ProgressReporter
from core.runner import CANCELLED_DIAGNOSTIC, PipelineRunner, RunState


class ScriptedPipeline(IterativePipeline):
    """Returns pre-set metrics, one per step."""

    name = "Scripted"

    def __init__(self, metrics, threshold=None, fail_on_init=False, output=None):
        super().__init__(max_iterations=len(metrics), convergence_threshold=threshold)
        self.metrics = list(metrics)
        self.fail_on_init = fail_on_init
        self.output = output
        self.steps = 0

    def initialize(self, inputs: PipelineInputs) -> None:
        if self.fail_on_init:
            raise PipelineFault("bad input")
        self.shape = inputs.primary.shape

    def step(self) -> float:
        value = self.metrics[self.steps]
        self.steps += 1
        return value

    def result(self) -> np.ndarray:
        return self.output if self.output is not None else np.zeros(self.shape)


def _inputs():
    return PipelineInputs(primary=np.zeros((2, 2, 2), dtype=np.uint8))


class TestPipelineRunner(unittest.TestCase):
    def test_converges_below_threshold(self):
        pipeline = ScriptedPipeline([0.5, 0.2, 0.01, 0.005], threshold=0.05)
        outcome = PipelineRunner(pipeline, _inputs()).run()
        self.assertIs(outcome.state, RunState.CONVERGED)
        self.assertEqual(outcome.iterations, 3)
        self.assertAlmostEqual(outcome.metric, 0.01)
        self.assertEqual(pipeline.steps, 3)
        self.assertTrue(outcome.succeeded)

    def test_iteration_limit(self):
        outcome = PipelineRunner(ScriptedPipeline([0.5, 0.4], threshold=0.05), _inputs()).run()
        self.assertIs(outcome.state, RunState.ITERATION_LIMIT_REACHED)
        self.assertEqual(outcome.iterations, 2)
        self.assertEqual(outcome.report, "Total number of iterations = 2 \n Final RMS error = 0.4")

    def test_without_threshold_runs_all_iterations(self):
        outcome = PipelineRunner(ScriptedPipeline([0.0, 0.0, 0.0]), _inputs()).run()
        self.assertIs(outcome.state, RunState.ITERATION_LIMIT_REACHED)
        self.assertEqual(outcome.iterations, 3)

    def test_non_finite_metric_fails(self):
        outcome = PipelineRunner(ScriptedPipeline([0.5, math.nan, 0.1]), _inputs()).run()
        self.assertIs(outcome.state, RunState.FAILED)
        self.assertEqual(outcome.iterations, 2)
        self.assertIn("Non-finite", outcome.diagnostic)
        self.assertIsNone(outcome.output)

    def test_non_finite_output_fails(self):
        bad = np.array([[[np.nan]]])
        outcome = PipelineRunner(ScriptedPipeline([0.1], output=bad), _inputs()).run()
        self.assertIs(outcome.state, RunState.FAILED)
        self.assertIn("non-finite", outcome.diagnostic)

    def test_pipeline_exception_becomes_diagnostic(self):
        outcome = PipelineRunner(ScriptedPipeline([0.1], fail_on_init=True), _inputs()).run()
        self.assertIs(outcome.state, RunState.FAILED)
        self.assertEqual(outcome.diagnostic, "PipelineFault: bad input")
        self.assertFalse(outcome.cancelled)

    def test_cancelled_before_first_step(self):
        pipeline = ScriptedPipeline([0.1, 0.1])
        outcome = PipelineRunner(pipeline, _inputs(), is_cancelled=lambda: True).run()
        self.assertIs(outcome.state, RunState.FAILED)
        self.assertTrue(outcome.cancelled)
        self.assertEqual(outcome.diagnostic, CANCELLED_DIAGNOSTIC)
        self.assertEqual(pipeline.steps, 0)

    def test_cancel_between_iterations(self):
        pipeline = ScriptedPipeline([0.1, 0.1, 0.1])
        flag = {"cancel": False}
        bus = ProgressBus().subscribe(lambda e: flag.update(cancel=True))
        runner = PipelineRunner(pipeline, _inputs(), ProgressReporter(bus), is_cancelled=lambda: flag["cancel"])
        outcome = runner.run()
        self.assertTrue(outcome.cancelled)
        self.assertEqual(outcome.iterations, 1)
        self.assertEqual(pipeline.steps, 1)

    def test_runner_is_single_use(self):
        runner = PipelineRunner(ScriptedPipeline([0.1]), _inputs())
        self.assertIs(runner.state, RunState.CONFIGURED)
        runner.run()
        self.assertTrue(runner.state.terminal)
        with self.assertRaises(RuntimeError):
            runner.run()

    def test_progress_per_iteration(self):
        events = []
        bus = ProgressBus().subscribe(events.append)
        PipelineRunner(ScriptedPipeline([0.3, 0.2, 0.1, 0.0]), _inputs(), ProgressReporter(bus)).run()
        self.assertEqual([e.fraction for e in events], [0.25, 0.5, 0.75, 1.0])
        self.assertTrue(all(e.channel == "iteration" for e in events))
