"""
Buffer adaptation between host-owned voxel storage and pipeline arrays.

Two wrappers keep ownership explicit:

* ``VolumeView``   - a borrowed (z, y, x, c) numpy view over the host buffer.
  Building one never copies; it must not outlive the invocation.
* ``OwnedVolume``  - an array allocated by the adaptation layer (bridged
  inputs, pipeline outputs) that is copied into the host buffer exactly once.

Input adaptation is chosen per pipeline: ``alias`` hands the pipeline a view
of the host data, ``bridge`` copies once into a working numeric kind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional, Tuple, Union

import numpy as np

from config import RANGE_SLAB_DEPTH
from core.base import VolumeDescriptor
from core.chunker import scalar_range_chunked
from core.errors import PreconditionError
from core.scalar_types import NumericKind

logger = logging.getLogger(__name__)

AdaptMode = Literal["alias", "bridge"]


@dataclass(frozen=True)
class VolumeView:
    """Non-owning view over a host buffer, shape (z, y, x, c)."""
    array: np.ndarray
    spacing: Tuple[float, float, float]
    origin: Tuple[float, float, float]
    kind: NumericKind
    owns_memory = False

    @property
    def components(self) -> int:
        return int(self.array.shape[3])

    @property
    def shape_zyx(self) -> Tuple[int, int, int]:
        return tuple(self.array.shape[:3])  # type: ignore[return-value]

    def component(self, index: int) -> np.ndarray:
        return self.array[..., index]


@dataclass(frozen=True)
class OwnedVolume:
    """Array allocated by the adaptation layer, shape (z, y, x, c)."""
    array: np.ndarray
    spacing: Tuple[float, float, float]
    origin: Tuple[float, float, float]
    kind: NumericKind
    owns_memory = True

    @property
    def components(self) -> int:
        return int(self.array.shape[3])

    @property
    def shape_zyx(self) -> Tuple[int, int, int]:
        return tuple(self.array.shape[:3])  # type: ignore[return-value]

    def component(self, index: int) -> np.ndarray:
        return self.array[..., index]


AdaptedVolume = Union[VolumeView, OwnedVolume]


def view_volume(volume: VolumeDescriptor, *, writable: bool = False) -> VolumeView:
    """
    Build a (z, y, x, c) view over the host buffer without copying.
    """
    volume.validate()
    kind = volume.kind
    try:
        flat = np.frombuffer(volume.buffer, dtype=kind.dtype)
    except (TypeError, ValueError) as exc:
        raise PreconditionError(f"Host buffer cannot be viewed as contiguous {kind.value} data: {exc}") from exc

    z, y, x = volume.shape_zyx
    arr = flat.reshape((z, y, x, volume.components))
    if writable:
        if not arr.flags.writeable:
            raise PreconditionError("Output buffer is read-only.")
    else:
        arr = arr.view()
        arr.flags.writeable = False
    return VolumeView(array=arr, spacing=volume.spacing, origin=volume.origin, kind=kind)


def scalar_range(volume: VolumeDescriptor) -> Tuple[float, float]:
    """
    Observed (min, max) over all components of the host volume.

    A declared-only volume (no buffer) or one without finite values reports
    the type range of its kind.
    """
    kind = volume.kind
    if volume.buffer is None:
        return (float(kind.type_min), float(kind.type_max))
    lo, hi = scalar_range_chunked(view_volume(volume).array, depth=RANGE_SLAB_DEPTH)
    if np.isnan(lo):
        return (float(kind.type_min), float(kind.type_max))
    return (lo, hi)


def adapt_input(
    volume: VolumeDescriptor,
    mode: AdaptMode,
    *,
    scalar_type: Optional[type] = None,
    working_kind: Optional[NumericKind] = None,
) -> AdaptedVolume:
    """
    Present a host volume to a pipeline.

    Args:
        volume: Host descriptor.
        mode: "alias" returns a read-only view; "bridge" copies once into
            ``working_kind``.
        scalar_type: Concrete numpy type chosen by the dispatcher; the host
            buffer must match it.
        working_kind: Target kind for bridging.
    """
    view = view_volume(volume, writable=False)
    if scalar_type is not None and view.kind.scalar_type is not scalar_type:
        raise PreconditionError(
            f"Dispatched type {np.dtype(scalar_type).name} does not match volume kind {view.kind.value}."
        )

    if mode == "alias":
        return view
    if mode == "bridge":
        if working_kind is None:
            raise ValueError("Bridging requires a working kind.")
        logger.debug("Bridging %s input into %s working buffer", view.kind.value, working_kind.value)
        return OwnedVolume(
            array=view.array.astype(working_kind.dtype, copy=True),
            spacing=view.spacing,
            origin=view.origin,
            kind=working_kind,
        )
    raise ValueError(f"Unknown adaptation mode: {mode!r}")


def allocate_output(
    shape_zyx: Tuple[int, int, int],
    kind: NumericKind,
    components: int,
    spacing: Tuple[float, float, float],
    origin: Tuple[float, float, float],
) -> OwnedVolume:
    """Zero-filled output of the declared kind, spatially sized like the input."""
    z, y, x = shape_zyx
    return OwnedVolume(
        array=np.zeros((z, y, x, int(components)), dtype=kind.dtype),
        spacing=tuple(spacing),  # type: ignore[arg-type]
        origin=tuple(origin),  # type: ignore[arg-type]
        kind=kind,
    )


def write_back(result: OwnedVolume, target: VolumeDescriptor) -> VolumeDescriptor:
    """
    Copy a finished result into the host output buffer in one pass.

    The target must already match the result in geometry, kind and
    component count; a mismatch leaves the host buffer untouched.
    """
    view = view_volume(target, writable=True)
    if view.kind is not result.kind:
        raise PreconditionError(f"Output buffer is {view.kind.value}, result is {result.kind.value}.")
    if view.array.shape != result.array.shape:
        raise PreconditionError(f"Output buffer shape {view.array.shape} != result shape {result.array.shape}.")
    np.copyto(view.array, result.array)
    return target


__all__ = [
    "AdaptMode",
    "VolumeView",
    "OwnedVolume",
    "AdaptedVolume",
    "view_volume",
    "scalar_range",
    "adapt_input",
    "allocate_output",
    "write_back",
]
