"""
Z-slab tiling of (z, y, x[, c]) volumes.

Hosts stream volumes in "pieces": runs of whole z slices. Pointwise pipelines
walk the same tiles so that no full-size floating-point copy is needed, and
whole-volume reductions (scalar range) stay bounded in memory.

No VTK imports; this module is completely headless.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generator, Iterable, List, Tuple

import numpy as np


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChunkDescriptor:
    """
    One piece of the volume.

    Attributes
    ----------
    chunk_id : int
        Position of the piece along z, starting at 0.
    volume_shape : tuple(int, int, int)
        Full volume shape (Z, Y, X).
    z_range : tuple(int, int)
        Slices owned by this piece, half-open.
    """

    chunk_id:      int
    volume_shape:  Tuple[int, int, int]
    z_range:       Tuple[int, int]

    @property
    def core_slices(self) -> Tuple[slice, slice, slice]:
        """Owned slices within the full volume."""
        return (slice(*self.z_range), slice(None), slice(None))

    @property
    def depth(self) -> int:
        return self.z_range[1] - self.z_range[0]


# ---------------------------------------------------------------------------
# SpatialChunker
# ---------------------------------------------------------------------------

class SpatialChunker:
    """
    Split a volume into z pieces of at most ``depth`` slices.

    Parameters
    ----------
    volume_shape : (D, H, W)
        Shape of the full volume; trailing component axes of the arrays
        handed to ``map_reduce`` are carried along untouched.
    depth : int
        Slices per piece; the last piece may be thinner.
    """

    def __init__(self, volume_shape: Tuple[int, int, int], depth: int = 64) -> None:
        if len(volume_shape) != 3:
            raise ValueError("volume_shape must be 3-D")
        self.volume_shape = tuple(int(v) for v in volume_shape)
        self.depth = max(int(depth), 1)

    @staticmethod
    def slabs(volume_shape: Tuple[int, int, int], depth: int) -> "SpatialChunker":
        return SpatialChunker(volume_shape, depth)

    @property
    def num_chunks(self) -> int:
        return -(-self.volume_shape[0] // self.depth)

    def __iter__(self) -> Generator[ChunkDescriptor, None, None]:
        total = self.volume_shape[0]
        for chunk_id, z0 in enumerate(range(0, total, self.depth)):
            yield ChunkDescriptor(chunk_id, self.volume_shape, (z0, min(z0 + self.depth, total)))

    def map_reduce(
        self,
        volume:    np.ndarray,
        map_fn:    Callable[[np.ndarray, ChunkDescriptor], Any],
        reduce_fn: Callable[[Iterable], Any],
    ) -> Any:
        """Apply *map_fn* to every piece and fold the partials with *reduce_fn*."""
        partials: List[Any] = [map_fn(volume[desc.core_slices], desc) for desc in self]
        return reduce_fn(partials)


# ---------------------------------------------------------------------------
# Convenience: chunked scalar range
# ---------------------------------------------------------------------------

def scalar_range_chunked(volume: np.ndarray, depth: int = 64) -> Tuple[float, float]:
    """
    Finite (min, max) of a (z, y, x[, c]) array, computed piece by piece.

    Arrays of fewer than three axes are treated as a single piece.
    Returns (nan, nan) when the array holds no finite value.
    """
    volume = np.asarray(volume)
    if volume.ndim < 3:
        volume = volume.reshape((1,) * (3 - volume.ndim) + volume.shape)
    chunker = SpatialChunker(volume.shape[:3], depth)  # type: ignore[arg-type]

    def _minmax(chunk: np.ndarray, _desc: ChunkDescriptor) -> Tuple[float, float]:
        if chunk.size == 0:
            return (np.nan, np.nan)
        if chunk.dtype.kind == "f":
            finite = chunk[np.isfinite(chunk)]
            if finite.size == 0:
                return (np.nan, np.nan)
            return (float(finite.min()), float(finite.max()))
        return (float(chunk.min()), float(chunk.max()))

    def _combine(parts: Iterable[Tuple[float, float]]) -> Tuple[float, float]:
        valid = [p for p in parts if not np.isnan(p[0])]
        if not valid:
            return (np.nan, np.nan)
        return (min(p[0] for p in valid), max(p[1] for p in valid))

    return chunker.map_reduce(volume, _minmax, _combine)


__all__ = ["ChunkDescriptor", "SpatialChunker", "scalar_range_chunked"]
