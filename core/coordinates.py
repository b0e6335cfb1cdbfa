"""
Coordinate conversion helpers for the project-wide 3D convention.

Convention:
- Raw voxel arrays use index order (z, y, x)
- World-space geometry uses axis order (x, y, z)
- Spacing/origin/dimension tuples are stored as (x, y, z)
- Seeds are discrete grid indices in (z, y, x)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Literal, NamedTuple, Tuple, Union

import numpy as np

from core.errors import PreconditionError


MarkerFrame = Literal["world", "index"]


class SeedPoint(NamedTuple):
    """Discrete grid index (z, y, x) derived from one host marker."""
    z: int
    y: int
    x: int


@dataclass(frozen=True)
class Marker:
    """
    Host annotation marker.

    ``position`` is (x, y, z); ``frame`` tells whether it is a physical
    coordinate ("world") or a fractional voxel index ("index").
    """
    position: Tuple[float, float, float]
    frame: MarkerFrame = "world"


MarkerLike = Union[Marker, Tuple[float, float, float]]


def world_xyz_to_voxel_zyx(
    world_xyz: Tuple[float, float, float],
    spacing_xyz: Tuple[float, float, float],
    origin_xyz: Tuple[float, float, float],
) -> Tuple[float, float, float]:
    """
    Convert world coordinates (x, y, z) to fractional voxel indices (z, y, x).
    """
    xw, yw, zw = world_xyz
    sx, sy, sz = spacing_xyz
    ox, oy, oz = origin_xyz
    if abs(sx) < 1e-12 or abs(sy) < 1e-12 or abs(sz) < 1e-12:
        raise ValueError("Spacing components must be non-zero.")
    x_idx = (xw - ox) / sx
    y_idx = (yw - oy) / sy
    z_idx = (zw - oz) / sz
    return (z_idx, y_idx, x_idx)


def world_xyz_to_index_zyx(
    world_xyz: Tuple[float, float, float],
    spacing_xyz: Tuple[float, float, float],
    origin_xyz: Tuple[float, float, float],
) -> Tuple[int, int, int]:
    """Convert world coordinates (x, y, z) to the nearest voxel indices (z, y, x)."""
    zf, yf, xf = world_xyz_to_voxel_zyx(world_xyz, spacing_xyz, origin_xyz)
    return (int(np.rint(zf)), int(np.rint(yf)), int(np.rint(xf)))


def voxel_zyx_to_world_xyz(
    z_idx: float,
    y_idx: float,
    x_idx: float,
    spacing_xyz: Tuple[float, float, float],
    origin_xyz: Tuple[float, float, float],
) -> Tuple[float, float, float]:
    """
    Convert one voxel index triple (z, y, x) to one world coordinate (x, y, z).
    """
    sx, sy, sz = spacing_xyz
    ox, oy, oz = origin_xyz
    return (
        float(ox + x_idx * sx),
        float(oy + y_idx * sy),
        float(oz + z_idx * sz),
    )


def index_in_bounds(index_zyx: Tuple[int, int, int], dimensions_xyz: Tuple[int, int, int]) -> bool:
    z, y, x = index_zyx
    nx, ny, nz = dimensions_xyz
    return 0 <= x < nx and 0 <= y < ny and 0 <= z < nz


def marker_to_seed(marker: MarkerLike, volume: Any) -> SeedPoint:
    """
    Map one host marker onto the nearest grid index of ``volume``.

    ``volume`` is anything exposing ``dimensions``, ``spacing`` and ``origin``
    in (x, y, z). A marker resolving outside the volume is rejected rather
    than clipped.
    """
    if not isinstance(marker, Marker):
        marker = Marker(position=tuple(float(v) for v in marker))  # type: ignore[arg-type]
    if len(marker.position) != 3:
        raise PreconditionError(f"Marker must have three coordinates, got {marker.position}.")

    if marker.frame == "index":
        xf, yf, zf = marker.position
        z, y, x = int(np.rint(zf)), int(np.rint(yf)), int(np.rint(xf))
    elif marker.frame == "world":
        try:
            z, y, x = world_xyz_to_index_zyx(marker.position, volume.spacing, volume.origin)
        except ValueError as exc:
            raise PreconditionError(str(exc)) from exc
    else:
        raise PreconditionError(f"Unknown marker frame: {marker.frame!r}")

    if not index_in_bounds((z, y, x), volume.dimensions):
        raise PreconditionError(
            f"Seed at {tuple(marker.position)} ({marker.frame}) resolves to index (x={x}, y={y}, z={z}), "
            f"outside the volume dimensions {tuple(volume.dimensions)}."
        )
    return SeedPoint(z=z, y=y, x=x)


def markers_to_seeds(markers: Iterable[MarkerLike], volume: Any, *, required: bool = False) -> List[SeedPoint]:
    """
    Convert the host marker list into seed indices for one invocation.
    """
    seeds = [marker_to_seed(marker, volume) for marker in markers]
    if required and not seeds:
        raise PreconditionError("Please select seed points using the 3D Markers in the Annotation menu.")
    return seeds


__all__ = [
    "SeedPoint",
    "Marker",
    "MarkerLike",
    "world_xyz_to_voxel_zyx",
    "world_xyz_to_index_zyx",
    "voxel_zyx_to_world_xyz",
    "index_in_bounds",
    "marker_to_seed",
    "markers_to_seeds",
]
