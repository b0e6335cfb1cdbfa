"""
Generic filter module: the adaptation chain between a host volume and one
pipeline, and the outbound boundary of every invocation.

    dispatch scalar type -> adapt input(s) -> convert seeds -> run pipeline
    (per component) -> cast / composite -> write back -> status

``FilterModule.process`` never raises: every failure is resolved into an
``ExecutionResult`` with a status and a message, and the host output buffer
is only written after the whole result is ready.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from core.base import PipelineInputs, VolumeDescriptor
from core.buffers import adapt_input, allocate_output, scalar_range, view_volume, write_back
from core.composite import compose_dual_output
from core.coordinates import MarkerLike, SeedPoint, markers_to_seeds
from core.dto import (
    ExecutionResult,
    ExecutionStatus,
    OutputDeclaration,
    PipelineParameters,
    parse_parameters,
)
from core.errors import PreconditionError
from core.progress import ProgressBus, ProgressReporter
from core.rescale import CastPolicy, linear_rescale, saturate_cast
from core.runner import PipelineRunner, RunOutcome, RunState
from core.scalar_types import NumericKind, check_component_count, dispatch_scalar_type

if TYPE_CHECKING:
    from plugins.spec import PluginSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineContext:
    """What a plugin factory may know when it builds its pipeline."""
    input_kind: NumericKind
    output_kind: NumericKind
    scalar_type: type
    scalar_range: Tuple[float, float]
    cast: Callable[[np.ndarray], np.ndarray]


@dataclass(frozen=True)
class _Prepared:
    params: PipelineParameters
    declaration: OutputDeclaration
    seeds: Tuple[SeedPoint, ...]
    composite: bool


class FilterModule:
    """
    One plugin bound to the generic adaptation chain.

    Args:
        spec: Per-plugin configuration (pipeline factory, adaptation mode,
            cast policy, capability flags).
    """

    def __init__(self, spec: "PluginSpec") -> None:
        self.spec = spec

    @property
    def name(self) -> str:
        return self.spec.name

    # ------------------------------------------------------------------
    # Negotiation
    # ------------------------------------------------------------------

    def parse(self, volume: VolumeDescriptor, raw_params: Optional[Mapping[str, Any]] = None) -> PipelineParameters:
        return parse_parameters(self.spec.parameters, raw_params, volume)

    def composite_enabled(self, params: PipelineParameters) -> bool:
        key = self.spec.composite_parameter
        return bool(key and params.get(key, False))

    def declare_output(
        self,
        volume: VolumeDescriptor,
        raw_params: Optional[Mapping[str, Any]] = None,
        params: Optional[PipelineParameters] = None,
    ) -> OutputDeclaration:
        """
        Publish the output type and capability flags before any data flows.

        Raises PreconditionError when the input cannot be processed at all.
        """
        spec = self.spec
        kind = volume.kind
        check_component_count(volume.components, spec.requires_single_component)
        if params is None:
            params = self.parse(volume, raw_params)

        if self.composite_enabled(params):
            out_kind, components = kind, 2
        else:
            out_kind = spec.output_kind or kind
            components = 1 if spec.requires_single_component else volume.components

        return OutputDeclaration(
            scalar_kind=out_kind,
            components=components,
            dimensions=volume.dimensions,
            spacing=volume.spacing,
            origin=volume.origin,
            per_voxel_memory=float(spec.per_voxel_memory(volume, params)),
            required_z_overlap=int(spec.required_z_overlap(params)),
            in_place=spec.supports_in_place,
            pieces=spec.supports_pieces,
            requires_second_input=spec.requires_second_input,
            requires_seeds=spec.requires_seeds,
        )

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def process(
        self,
        volume: VolumeDescriptor,
        output: VolumeDescriptor,
        raw_params: Optional[Mapping[str, Any]] = None,
        markers: Iterable[MarkerLike] = (),
        second_volume: Optional[VolumeDescriptor] = None,
        progress_bus: Optional[ProgressBus] = None,
        is_cancelled: Optional[Callable[[], bool]] = None,
    ) -> ExecutionResult:
        """
        Run the plugin on ``volume`` and fill ``output``.

        ``output`` must match ``declare_output`` for the same parameters. On
        any failure it is left exactly as it was.
        """
        try:
            prepared = self._prepare(volume, output, raw_params, markers, second_volume)
            stages = [f"component {c}" for c in range(self._component_runs(volume))]
            reporter = ProgressReporter(progress_bus, stages if len(stages) > 1 else ())
            return dispatch_scalar_type(
                volume.kind,
                self._typed_path,
                volume,
                output,
                second_volume,
                prepared,
                reporter,
                is_cancelled,
            )
        except PreconditionError as exc:
            logger.warning("%s: precondition failed: %s", self.name, exc)
            return ExecutionResult(ExecutionStatus.PRECONDITION_ERROR, message=str(exc))
        except InterruptedError as exc:
            logger.info("%s: cancelled: %s", self.name, exc)
            return ExecutionResult(
                ExecutionStatus.PIPELINE_ERROR,
                message=str(exc) or "Cancelled by user.",
                run_state=RunState.FAILED,
                cancelled=True,
            )
        except Exception as exc:
            logger.exception("%s: unexpected failure", self.name)
            return ExecutionResult(
                ExecutionStatus.PIPELINE_ERROR,
                message=f"{type(exc).__name__}: {exc}",
                run_state=RunState.FAILED,
            )

    def _component_runs(self, volume: VolumeDescriptor) -> int:
        return 1 if self.spec.requires_single_component else volume.components

    def _prepare(
        self,
        volume: VolumeDescriptor,
        output: VolumeDescriptor,
        raw_params: Optional[Mapping[str, Any]],
        markers: Iterable[MarkerLike],
        second_volume: Optional[VolumeDescriptor],
    ) -> _Prepared:
        spec = self.spec
        volume.validate()
        check_component_count(volume.components, spec.requires_single_component)
        params = self.parse(volume, raw_params)
        if spec.validate is not None:
            spec.validate(params, volume)

        if spec.requires_second_input:
            if second_volume is None:
                raise PreconditionError("This filter requires a second input volume.")
            second_volume.validate()
            check_component_count(second_volume.components, True)
            if second_volume.dimensions != volume.dimensions:
                raise PreconditionError(
                    f"Second input dimensions {second_volume.dimensions} differ from input dimensions {volume.dimensions}."
                )

        declaration = self.declare_output(volume, params=params)
        output.validate()
        if not declaration.matches(output):
            raise PreconditionError(
                f"Output buffer ({output.kind.value} x {output.components}, {output.dimensions}) does not match "
                f"the declared output ({declaration.scalar_kind.value} x {declaration.components}, {declaration.dimensions})."
            )

        seeds = tuple(markers_to_seeds(markers, volume, required=spec.requires_seeds))
        return _Prepared(params, declaration, seeds, self.composite_enabled(params))

    def _typed_path(self, scalar_type: type) -> Callable[..., ExecutionResult]:
        return functools.partial(self._execute, scalar_type)

    def _cast_for(self, params: PipelineParameters, kind: NumericKind) -> Callable[[np.ndarray], np.ndarray]:
        spec = self.spec
        if spec.cast_policy is CastPolicy.SATURATE:
            return functools.partial(saturate_cast, kind=kind)
        out_min, out_max = spec.output_bounds(params, kind) if spec.output_bounds else (kind.type_min, kind.type_max)
        window = spec.rescale_window(params) if spec.rescale_window else None
        return functools.partial(linear_rescale, kind=kind, out_min=out_min, out_max=out_max, window=window)

    def _execute(
        self,
        scalar_type: type,
        volume: VolumeDescriptor,
        output: VolumeDescriptor,
        second_volume: Optional[VolumeDescriptor],
        prepared: _Prepared,
        reporter: ProgressReporter,
        is_cancelled: Optional[Callable[[], bool]],
    ) -> ExecutionResult:
        spec = self.spec
        kind = volume.kind
        declaration = prepared.declaration
        logger.debug("%s: dispatched %s, %s input", self.name, kind.value, spec.input_mode)

        adapted = adapt_input(volume, spec.input_mode, scalar_type=scalar_type, working_kind=spec.working_kind)
        secondary = None
        if spec.requires_second_input and second_volume is not None:
            secondary = adapt_input(second_volume, "alias").component(0)

        derived_kind = kind if prepared.composite else declaration.scalar_kind
        context = PipelineContext(
            input_kind=kind,
            output_kind=derived_kind,
            scalar_type=scalar_type,
            scalar_range=scalar_range(volume),
            cast=self._cast_for(prepared.params, derived_kind),
        )

        results: List[np.ndarray] = []
        outcome: Optional[RunOutcome] = None
        runs = self._component_runs(volume)
        for c in range(runs):
            pipeline = spec.build(prepared.params, context)
            inputs = PipelineInputs(
                primary=adapted.component(c),
                spacing=volume.spacing,
                origin=volume.origin,
                seeds=prepared.seeds,
                secondary=secondary,
            )
            stage = f"component {c}" if runs > 1 else None
            outcome = PipelineRunner(
                pipeline, inputs, reporter, is_cancelled, stage=stage, message=spec.update_message
            ).run()
            if not outcome.succeeded:
                return ExecutionResult(
                    ExecutionStatus.PIPELINE_ERROR,
                    message=outcome.diagnostic,
                    iterations=outcome.iterations,
                    metric=outcome.metric,
                    run_state=outcome.state,
                    cancelled=outcome.cancelled,
                    dispatched_kind=kind,
                )
            results.append(outcome.output)

        staged = allocate_output(
            volume.shape_zyx, declaration.scalar_kind, declaration.components, volume.spacing, volume.origin
        )
        if prepared.composite:
            original = view_volume(volume).component(0)
            staged.array[...] = compose_dual_output(original, results[0], kind)
        else:
            for c, values in enumerate(results):
                # tiled pipelines cast slab by slab
                staged.array[..., c] = values if spec.supports_pieces else context.cast(values)

        reporter.report(1.0, spec.done_message)
        write_back(staged, output)

        report = outcome.report if spec.reports_iterations else ""
        logger.info("%s: %s (%s, %d iterations)", self.name, spec.done_message, outcome.state.value, outcome.iterations)
        return ExecutionResult(
            ExecutionStatus.SUCCESS,
            message=spec.done_message,
            report=report,
            output=output,
            iterations=outcome.iterations,
            metric=outcome.metric,
            run_state=outcome.state,
            dispatched_kind=kind,
        )


def run_filter(
    spec: "PluginSpec",
    volume: VolumeDescriptor,
    raw_params: Optional[Mapping[str, Any]] = None,
    markers: Sequence[MarkerLike] = (),
    second_volume: Optional[VolumeDescriptor] = None,
    progress_bus: Optional[ProgressBus] = None,
    is_cancelled: Optional[Callable[[], bool]] = None,
) -> Tuple[ExecutionResult, Optional[VolumeDescriptor]]:
    """
    Host-side convenience: declare, allocate and process in one call.

    Returns the result and the allocated output (None when the declaration
    itself was rejected).
    """
    module = FilterModule(spec)
    try:
        declaration = module.declare_output(volume, raw_params)
    except PreconditionError as exc:
        return ExecutionResult(ExecutionStatus.PRECONDITION_ERROR, message=str(exc)), None
    output = declaration.allocate()
    result = module.process(volume, output, raw_params, markers, second_volume, progress_bus, is_cancelled)
    return result, output


__all__ = ["PipelineContext", "FilterModule", "run_filter"]
