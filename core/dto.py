"""
Data Transfer Objects (DTOs) for filter invocations.

Design rules
------------
* All DTOs are immutable (frozen=True).  The adaptation layer never calls into
  a GUI; the host builds parameter values and *pushes* them with the call.
* ``from_dict`` factory methods keep serialisation in one place.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Sequence, Tuple, Union

from config import CLI_DEFAULT_FORMATS
from core.base import VolumeDescriptor
from core.errors import PreconditionError
from core.runner import RunState
from core.scalar_types import NumericKind


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}

DefaultValue = Union[int, float, bool, Callable[[VolumeDescriptor], Any]]


@dataclass(frozen=True)
class ParameterSpec:
    """
    One user-tunable parameter as the host presents it.

    ``default`` is either a value or a callable computing it from the input
    volume (e.g. its scalar range), so a first invocation without any host
    values still runs. ``minimum``/``maximum``/``step`` are GUI hints only.
    """

    name:     str
    label:    str
    type:     str                = "float"   # "int" | "float" | "bool"
    default:  DefaultValue       = 0.0
    minimum:  Optional[float]    = None
    maximum:  Optional[float]    = None
    step:     Optional[float]    = None
    help:     str                = ""

    def resolve_default(self, volume: Optional[VolumeDescriptor]) -> Any:
        value = self.default
        if callable(value):
            if volume is None:
                raise PreconditionError(f"Parameter '{self.name}' has a volume-dependent default but no volume was given.")
            value = value(volume)
        return self.parse(value)

    def parse(self, raw: Any) -> Any:
        """Convert a host value (string or number) into the declared type."""
        try:
            if self.type == "bool":
                return _parse_bool(raw)
            if self.type == "int":
                return _parse_int(raw)
            if self.type == "float":
                value = float(raw.strip() if isinstance(raw, str) else raw)
                if math.isnan(value):
                    raise ValueError("NaN is not a valid value")
                return value
        except (TypeError, ValueError) as exc:
            raise PreconditionError(f"Invalid value {raw!r} for parameter '{self.name}' ({self.type}): {exc}") from exc
        raise PreconditionError(f"Parameter '{self.name}' has unknown type {self.type!r}.")


def _parse_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)) and raw in (0, 1):
        return bool(raw)
    text = str(raw).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError("expected one of 0/1/true/false/yes/no")


def _parse_int(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValueError("boolean is not an integer")
    if isinstance(raw, int):
        return raw
    value = float(raw.strip() if isinstance(raw, str) else raw)
    if not math.isfinite(value) or not value.is_integer():
        raise ValueError("expected an integral value")
    return int(value)


class PipelineParameters(Mapping[str, Any]):
    """Immutable name -> typed value mapping for one invocation."""

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = MappingProxyType(dict(values))

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"PipelineParameters({dict(self._values)!r})"


def parse_parameters(
    specs: Sequence[ParameterSpec],
    raw: Optional[Mapping[str, Any]] = None,
    volume: Optional[VolumeDescriptor] = None,
) -> PipelineParameters:
    """
    Parse raw host values against ``specs``; missing names take their default.

    Unknown names and unparseable values are precondition errors.
    """
    raw = dict(raw or {})
    known = {spec.name for spec in specs}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise PreconditionError(f"Unknown parameter(s): {', '.join(unknown)}. Expected: {', '.join(sorted(known))}.")

    values: Dict[str, Any] = {}
    for spec in specs:
        if spec.name in raw and raw[spec.name] is not None and raw[spec.name] != "":
            values[spec.name] = spec.parse(raw[spec.name])
        else:
            values[spec.name] = spec.resolve_default(volume)
    return PipelineParameters(values)


# ---------------------------------------------------------------------------
# Output declaration and results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OutputDeclaration:
    """
    What the filter publishes before any data flows: the output voxel type and
    the capability flags the host negotiates on.
    """

    scalar_kind:            NumericKind
    components:             int
    dimensions:             Tuple[int, int, int]
    spacing:                Tuple[float, float, float]
    origin:                 Tuple[float, float, float]
    per_voxel_memory:       float = 0.0
    required_z_overlap:     int   = 0
    in_place:               bool  = False
    pieces:                 bool  = False
    requires_second_input:  bool  = False
    requires_seeds:         bool  = False

    def allocate(self) -> VolumeDescriptor:
        """Host-side allocation of a buffer matching this declaration."""
        return VolumeDescriptor.allocate(self.dimensions, self.scalar_kind, self.components, self.spacing, self.origin)

    def matches(self, volume: VolumeDescriptor) -> bool:
        return (
            volume.dimensions == self.dimensions
            and volume.components == self.components
            and volume.kind is self.scalar_kind
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scalar_kind":           self.scalar_kind.value,
            "components":            self.components,
            "dimensions":            list(self.dimensions),
            "spacing":               list(self.spacing),
            "origin":                list(self.origin),
            "per_voxel_memory":      self.per_voxel_memory,
            "required_z_overlap":    self.required_z_overlap,
            "in_place":              self.in_place,
            "pieces":                self.pieces,
            "requires_second_input": self.requires_second_input,
            "requires_seeds":        self.requires_seeds,
        }


class ExecutionStatus(str, Enum):
    SUCCESS = "success"
    PRECONDITION_ERROR = "precondition-error"
    PIPELINE_ERROR = "pipeline-error"

    @property
    def exit_code(self) -> int:
        return {ExecutionStatus.SUCCESS: 0, ExecutionStatus.PRECONDITION_ERROR: 1}.get(self, 2)


@dataclass(frozen=True)
class ExecutionResult:
    """Outbound status of one invocation."""

    status:           ExecutionStatus
    message:          str                          = ""
    report:           str                          = ""
    output:           Optional[VolumeDescriptor]   = None
    iterations:       int                          = 0
    metric:           float                        = math.nan
    run_state:        Optional[RunState]           = None
    cancelled:        bool                         = False
    dispatched_kind:  Optional[NumericKind]        = None

    @property
    def succeeded(self) -> bool:
        return self.status is ExecutionStatus.SUCCESS


# ---------------------------------------------------------------------------
# Headless invocation DTO
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InvocationDTO:
    """
    Immutable configuration for a headless filter run.

    Used by the CLI and by unit tests that bypass any host GUI.
    """

    # Filter
    plugin:             str                                   = ""
    parameters:         Mapping[str, Any]                     = field(default_factory=dict)

    # Input
    input_path:         str                                   = ""
    loader_type:        str                                   = "numpy"    # "numpy" | "synthetic"
    synthetic_pattern:  str                                   = "sphere"   # "sphere" | "outlier"
    synthetic_shape:    Tuple[int, int, int]                  = (32, 32, 32)
    synthetic_kind:     str                                   = "uint8"
    second_input_path:  Optional[str]                         = None

    # Seeds
    markers:            Tuple[Tuple[float, float, float], ...] = ()
    marker_frame:       str                                   = "world"    # "world" | "index"

    # Output
    output_path:        Optional[str]                         = None
    export_formats:     Tuple[str, ...]                       = CLI_DEFAULT_FORMATS

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "InvocationDTO":
        return InvocationDTO(
            plugin            = str(d.get("plugin",            "")),
            parameters        = dict(d.get("parameters")       or {}),
            input_path        = str(d.get("input_path",        "") or ""),
            loader_type       = str(d.get("loader_type",       "numpy")),
            synthetic_pattern = str(d.get("synthetic_pattern", "sphere")),
            synthetic_shape   = tuple(int(v) for v in d.get("synthetic_shape", [32, 32, 32])),
            synthetic_kind    = str(d.get("synthetic_kind",    "uint8")),
            second_input_path = d.get("second_input_path"),
            markers           = tuple(tuple(float(c) for c in m) for m in d.get("markers") or []),
            marker_frame      = str(d.get("marker_frame",      "world")),
            output_path       = d.get("output_path"),
            export_formats    = tuple(d.get("export_formats") or CLI_DEFAULT_FORMATS),
        )

    @staticmethod
    def from_yaml(path: str) -> "InvocationDTO":
        """Load an invocation from a YAML file."""
        import yaml
        with open(path, encoding="utf-8") as fh:
            d = yaml.safe_load(fh)
        return InvocationDTO.from_dict(d or {})

    @staticmethod
    def from_json(path: str) -> "InvocationDTO":
        """Load an invocation from a JSON file."""
        import json
        with open(path, encoding="utf-8") as fh:
            d = json.load(fh)
        return InvocationDTO.from_dict(d or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plugin":            self.plugin,
            "parameters":        dict(self.parameters),
            "input_path":        self.input_path,
            "loader_type":       self.loader_type,
            "synthetic_pattern": self.synthetic_pattern,
            "synthetic_shape":   list(self.synthetic_shape),
            "synthetic_kind":    self.synthetic_kind,
            "second_input_path": self.second_input_path,
            "markers":           [list(m) for m in self.markers],
            "marker_frame":      self.marker_frame,
            "output_path":       self.output_path,
            "export_formats":    list(self.export_formats),
        }


__all__ = [
    "ParameterSpec",
    "PipelineParameters",
    "parse_parameters",
    "OutputDeclaration",
    "ExecutionStatus",
    "ExecutionResult",
    "InvocationDTO",
]
