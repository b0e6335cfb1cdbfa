"""
Core module containing the volume model and the generic adaptation layer.
"""

from core.errors import PreconditionError, PipelineFault
from core.scalar_types import NumericKind, check_component_count, dispatch_scalar_type
from core.base import VolumeDescriptor, PipelineInputs, IterativePipeline, BaseLoader
from core.buffers import VolumeView, OwnedVolume, view_volume, scalar_range, adapt_input, allocate_output, write_back
from core.coordinates import (
    SeedPoint,
    Marker,
    world_xyz_to_index_zyx,
    voxel_zyx_to_world_xyz,
    marker_to_seed,
    markers_to_seeds,
)
from core.chunker import SpatialChunker, ChunkDescriptor, scalar_range_chunked
from core.rescale import CastPolicy, saturate_cast, linear_rescale, apply_cast_policy
from core.composite import compose_dual_output
from core.runner import RunState, RunOutcome, PipelineRunner
from core.progress import (
    ProgressEvent,
    ProgressObserver,
    ProgressBus,
    StageProgressMapper,
    ProgressReporter,
    CancelToken,
    CancelFlagObserver,
    TerminalProgressObserver,
)
from core.dto import (
    ParameterSpec,
    PipelineParameters,
    parse_parameters,
    OutputDeclaration,
    ExecutionStatus,
    ExecutionResult,
    InvocationDTO,
)
from core.module import PipelineContext, FilterModule, run_filter

__all__ = [
    'PreconditionError', 'PipelineFault',
    'NumericKind', 'check_component_count', 'dispatch_scalar_type',
    'VolumeDescriptor', 'PipelineInputs', 'IterativePipeline', 'BaseLoader',
    'VolumeView', 'OwnedVolume', 'view_volume', 'scalar_range', 'adapt_input', 'allocate_output', 'write_back',
    'SeedPoint', 'Marker', 'world_xyz_to_index_zyx', 'voxel_zyx_to_world_xyz', 'marker_to_seed', 'markers_to_seeds',
    'SpatialChunker', 'ChunkDescriptor', 'scalar_range_chunked',
    'CastPolicy', 'saturate_cast', 'linear_rescale', 'apply_cast_policy',
    'compose_dual_output',
    'RunState', 'RunOutcome', 'PipelineRunner',
    'ProgressEvent', 'ProgressObserver', 'ProgressBus', 'StageProgressMapper', 'ProgressReporter',
    'CancelToken', 'CancelFlagObserver', 'TerminalProgressObserver',
    'ParameterSpec', 'PipelineParameters', 'parse_parameters', 'OutputDeclaration',
    'ExecutionStatus', 'ExecutionResult', 'InvocationDTO',
    'PipelineContext', 'FilterModule', 'run_filter',
]
