"""
Core data structures and abstract base classes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from core.coordinates import SeedPoint
from core.errors import PreconditionError
from core.scalar_types import NumericKind


@dataclass
class VolumeDescriptor:
    """
    Host-owned 3D volume handed to a filter for the duration of one call.

    Attributes:
        dimensions (Tuple[int, int, int]): Voxel counts (x, y, z).
        spacing (Tuple[float, float, float]): Voxel spacing (x, y, z) in mm.
        origin (Tuple[float, float, float]): Origin coordinates (x, y, z) in mm.
        scalar_kind: Host scalar tag, resolved through ``NumericKind.from_tag``.
        components (int): Interleaved components per voxel.
        buffer: Contiguous x-fastest storage exporting the buffer protocol,
            or None for an output that has only been declared.
        metadata (Dict[str, Any]): Arbitrary host metadata.
    """
    dimensions: Tuple[int, int, int]
    spacing: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    scalar_kind: Any = NumericKind.UINT8
    components: int = 1
    buffer: Optional[Any] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.dimensions = tuple(int(d) for d in self.dimensions)  # type: ignore[assignment]
        self.spacing = tuple(float(s) for s in self.spacing)  # type: ignore[assignment]
        self.origin = tuple(float(o) for o in self.origin)  # type: ignore[assignment]
        self.components = int(self.components)

    @property
    def kind(self) -> NumericKind:
        return NumericKind.from_tag(self.scalar_kind)

    @property
    def shape_zyx(self) -> Tuple[int, int, int]:
        """Array shape (z, y, x) of one component."""
        x, y, z = self.dimensions
        return (z, y, x)

    @property
    def voxel_count(self) -> int:
        x, y, z = self.dimensions
        return x * y * z

    @property
    def expected_nbytes(self) -> int:
        return self.voxel_count * self.components * self.kind.itemsize

    @property
    def buffer_nbytes(self) -> int:
        if self.buffer is None:
            return 0
        return memoryview(self.buffer).nbytes

    def validate(self) -> None:
        """Check geometry and the buffer length invariant."""
        if len(self.dimensions) != 3 or any(d < 1 for d in self.dimensions):
            raise PreconditionError(f"Volume dimensions must be three positive integers, got {self.dimensions}.")
        if len(self.spacing) != 3 or any(abs(s) < 1e-12 for s in self.spacing):
            raise PreconditionError(f"Spacing components must be non-zero, got {self.spacing}.")
        if len(self.origin) != 3:
            raise PreconditionError(f"Origin must have three components, got {self.origin}.")
        if self.components < 1:
            raise PreconditionError(f"Component count must be >= 1, got {self.components}.")
        if self.buffer is None:
            raise PreconditionError("Volume has no voxel buffer attached.")
        if self.buffer_nbytes != self.expected_nbytes:
            raise PreconditionError(
                f"Buffer holds {self.buffer_nbytes} bytes but {self.dimensions} x {self.components} "
                f"x {self.kind.value} requires {self.expected_nbytes}."
            )

    @staticmethod
    def from_array(
        array: np.ndarray,
        spacing: Tuple[float, float, float] = (1.0, 1.0, 1.0),
        origin: Tuple[float, float, float] = (0.0, 0.0, 0.0),
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "VolumeDescriptor":
        """
        Wrap a (z, y, x) or (z, y, x, c) array. A C-contiguous array is used
        as the buffer directly, so writes through the descriptor reach it.
        """
        arr = np.ascontiguousarray(array)
        if arr.ndim == 3:
            components = 1
        elif arr.ndim == 4:
            components = arr.shape[3]
        else:
            raise PreconditionError(f"Expected a (z, y, x[, c]) array, got shape={arr.shape}")
        z, y, x = arr.shape[:3]
        return VolumeDescriptor(
            dimensions=(x, y, z),
            spacing=spacing,
            origin=origin,
            scalar_kind=NumericKind.from_tag(arr.dtype),
            components=components,
            buffer=arr,
            metadata=dict(metadata or {}),
        )

    @staticmethod
    def allocate(
        dimensions: Tuple[int, int, int],
        scalar_kind: Any,
        components: int = 1,
        spacing: Tuple[float, float, float] = (1.0, 1.0, 1.0),
        origin: Tuple[float, float, float] = (0.0, 0.0, 0.0),
    ) -> "VolumeDescriptor":
        """Host-side allocation of a zero-filled buffer."""
        kind = NumericKind.from_tag(scalar_kind)
        x, y, z = (int(d) for d in dimensions)
        return VolumeDescriptor(
            dimensions=(x, y, z),
            spacing=spacing,
            origin=origin,
            scalar_kind=kind,
            components=components,
            buffer=bytearray(x * y * z * int(components) * kind.itemsize),
        )


@dataclass(frozen=True)
class PipelineInputs:
    """Everything an opaque pipeline may read during one run."""
    primary: np.ndarray
    spacing: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    seeds: Tuple[SeedPoint, ...] = ()
    secondary: Optional[np.ndarray] = None

    @property
    def spacing_zyx(self) -> Tuple[float, float, float]:
        sx, sy, sz = self.spacing
        return (sz, sy, sx)


class IterativePipeline(ABC):
    """
    Contract of an external processing pipeline as seen by the runner.

    Parameters are bound in the constructor and never changed afterwards;
    ``initialize`` receives the data, ``step`` advances one iteration and
    returns the convergence metric, ``result`` exposes the numeric output.
    """

    name: str = "pipeline"

    def __init__(self, max_iterations: int = 1, convergence_threshold: Optional[float] = None) -> None:
        self.max_iterations = max(int(max_iterations), 0)
        self.convergence_threshold = convergence_threshold

    @abstractmethod
    def initialize(self, inputs: PipelineInputs) -> None:
        """Bind input data and seeds before the first step."""
        pass

    @abstractmethod
    def step(self) -> float:
        """Run one iteration and return its metric (e.g. RMS change)."""
        pass

    @abstractmethod
    def result(self) -> np.ndarray:
        """Return the (z, y, x) output of the last completed step."""
        pass


class BaseLoader(ABC):
    """Abstract base class for host-side volume sources."""

    @abstractmethod
    def load(self, source: str, callback: Optional[Callable[[int, str], None]] = None) -> VolumeDescriptor:
        """
        Load a volume from a source path.

        Args:
            source (str): Path to the file.
            callback: Optional progress callback (percent, message).

        Returns:
            VolumeDescriptor: Loaded volume owning its buffer.
        """
        pass


def require_seeds(seeds: Sequence[SeedPoint], filter_name: str) -> None:
    if not seeds:
        raise PreconditionError(f"{filter_name} needs at least one seed point.")
