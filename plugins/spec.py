"""
Per-plugin configuration table entry.

Which pipelines alias or bridge their input, which rescale or saturate
their output, and which may composite is declared here, once per plugin.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from core.base import IterativePipeline, VolumeDescriptor
from core.buffers import AdaptMode, scalar_range
from core.dto import ParameterSpec, PipelineParameters
from core.module import PipelineContext
from core.rescale import CastPolicy
from core.scalar_types import NumericKind

PipelineFactory = Callable[[PipelineParameters, PipelineContext], IterativePipeline]
MemoryEstimate = Callable[[VolumeDescriptor, PipelineParameters], float]


def _no_overlap(_params: PipelineParameters) -> int:
    return 0


def _no_memory(_volume: VolumeDescriptor, _params: PipelineParameters) -> float:
    return 0.0


# Volume-dependent parameter defaults
def input_minimum(volume: VolumeDescriptor) -> float:
    return scalar_range(volume)[0]


def input_window_maximum(volume: VolumeDescriptor) -> float:
    """Input maximum, one unit above the minimum when the input is constant."""
    lo, hi = scalar_range(volume)
    return hi if hi > lo else lo + 1.0


def input_midpoint(volume: VolumeDescriptor) -> float:
    lo, hi = scalar_range(volume)
    return 0.5 * (lo + hi)


def type_minimum(volume: VolumeDescriptor) -> float:
    return float(volume.kind.type_min)


def type_maximum(volume: VolumeDescriptor) -> float:
    return float(volume.kind.type_max)


def one_scalar_in_one_out(volume: VolumeDescriptor, _params: PipelineParameters) -> float:
    """Multi-component inputs are split: one input and one output scalar per voxel."""
    return 2.0 * volume.kind.itemsize if volume.components > 1 else 0.0


@dataclass(frozen=True)
class PluginSpec:
    """
    Everything the generic module needs to adapt one pipeline to the host.

    Attributes:
        key: Registry key (CLI ``--plugin``).
        name / group / terse / documentation: Host-facing metadata.
        parameters: GUI parameter declarations, in presentation order.
        build: Factory creating a fresh pipeline per run.
        input_mode: "alias" (zero-copy view) or "bridge" (copy into ``working_kind``).
        output_kind: Fixed output kind; None keeps the input kind.
        cast_policy: Saturating cast or linear rescale of the pipeline output.
        rescale_window / output_bounds: Linear-rescale window (None = observed
            range) and output bounds (None = type range).
        composite_parameter: Boolean parameter switching dual output on.
    """

    key:                        str
    name:                       str
    group:                      str
    terse:                      str
    documentation:              str
    parameters:                 Tuple[ParameterSpec, ...]
    build:                      PipelineFactory
    input_mode:                 AdaptMode                                          = "alias"
    working_kind:               Optional[NumericKind]                              = None
    output_kind:                Optional[NumericKind]                              = None
    cast_policy:                CastPolicy                                         = CastPolicy.SATURATE
    rescale_window:             Optional[Callable[[PipelineParameters], Tuple[float, float]]] = None
    output_bounds:              Optional[Callable[[PipelineParameters, NumericKind], Tuple[float, float]]] = None
    requires_single_component:  bool                                               = True
    requires_seeds:             bool                                               = False
    requires_second_input:      bool                                               = False
    composite_parameter:        Optional[str]                                      = None
    supports_in_place:          bool                                               = False
    supports_pieces:            bool                                               = False
    reports_iterations:         bool                                               = False
    per_voxel_memory:           MemoryEstimate                                     = _no_memory
    required_z_overlap:         Callable[[PipelineParameters], int]                = _no_overlap
    validate:                   Optional[Callable[[PipelineParameters, VolumeDescriptor], None]] = None
    update_message:             str                                                = "Processing..."
    done_message:               str                                                = "Done."

    def describe(self) -> Dict[str, Any]:
        """Static metadata, as published to the host before any data flows."""
        return {
            "key":                       self.key,
            "name":                      self.name,
            "group":                     self.group,
            "terse":                     self.terse,
            "documentation":             self.documentation,
            "input_mode":                self.input_mode,
            "output_kind":               self.output_kind.value if self.output_kind else "input",
            "cast_policy":               self.cast_policy.value,
            "requires_single_component": self.requires_single_component,
            "requires_seeds":            self.requires_seeds,
            "requires_second_input":     self.requires_second_input,
            "supports_composite":        self.composite_parameter is not None,
            "supports_in_place":         self.supports_in_place,
            "supports_pieces":           self.supports_pieces,
            "update_message":            self.update_message,
            "parameters": [
                {
                    "name": p.name,
                    "label": p.label,
                    "type": p.type,
                    "default": None if callable(p.default) else p.default,
                    "hints": [p.minimum, p.maximum, p.step],
                    "help": p.help,
                }
                for p in self.parameters
            ],
        }


__all__ = [
    "PluginSpec",
    "PipelineFactory",
    "MemoryEstimate",
    "input_minimum",
    "input_window_maximum",
    "input_midpoint",
    "type_minimum",
    "type_maximum",
    "one_scalar_in_one_out",
]
