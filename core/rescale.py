"""
Rescale/cast stage: map pipeline output onto the host output scalar type.

Two policies:

* ``saturate_cast``  - round to nearest (ties away from zero) and clamp into
  the native range of the output kind. NaN becomes 0 for integer kinds.
* ``linear_rescale`` - map a window ``[lo, hi]`` (observed range by default)
  linearly onto ``[out_min, out_max]``, clamping values outside the window,
  then saturate-cast.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Tuple

import numpy as np
from skimage import exposure

from core.chunker import scalar_range_chunked
from core.errors import PreconditionError
from core.scalar_types import NumericKind

logger = logging.getLogger(__name__)


class CastPolicy(str, Enum):
    SATURATE = "saturate"
    LINEAR = "linear"


def round_half_away_from_zero(values: np.ndarray) -> np.ndarray:
    """Nearest integer, ties rounded away from zero (2.5 -> 3, -2.5 -> -3)."""
    v = np.asarray(values, dtype=np.float64)
    return np.sign(v) * np.floor(np.abs(v) + 0.5)


def saturate_cast(values: np.ndarray, kind: NumericKind) -> np.ndarray:
    """
    Direct cast with saturation into ``kind``.

    Integer targets: round half away from zero, NaN -> 0, clamp to the type
    range. Float targets: clamp to the finite range of the type (+/-inf
    saturate to the extremes, NaN passes through).
    """
    arr = np.asarray(values)
    if arr.dtype == kind.dtype:
        return arr.copy()

    if kind.is_integer:
        if np.issubdtype(arr.dtype, np.integer):
            lo, hi = kind.type_min, kind.type_max
            info = np.iinfo(arr.dtype)
            if info.min >= lo and info.max <= hi:
                return arr.astype(kind.dtype)
            # integer -> integer narrowing, compared exactly (no float round trip)
            out = np.empty(arr.shape, dtype=kind.dtype)
            high = arr > hi if info.max > hi else np.zeros(arr.shape, dtype=bool)
            low = arr < lo if info.min < lo else np.zeros(arr.shape, dtype=bool)
            mid = ~(high | low)
            out[high] = hi
            out[low] = lo
            out[mid] = arr[mid].astype(kind.dtype)
            return out

        rounded = round_half_away_from_zero(arr)
        rounded = np.where(np.isnan(rounded), 0.0, rounded)
        out = np.empty(rounded.shape, dtype=kind.dtype)
        high = rounded >= float(kind.type_max)
        low = rounded <= float(kind.type_min)
        mid = ~(high | low)
        out[high] = kind.type_max
        out[low] = kind.type_min
        out[mid] = rounded[mid].astype(kind.dtype)
        return out

    finfo = np.finfo(kind.dtype)
    clipped = np.clip(arr.astype(np.float64, copy=False), float(finfo.min), float(finfo.max))
    return clipped.astype(kind.dtype)


def observed_window(values: np.ndarray) -> Tuple[float, float]:
    """Finite (min, max) of ``values``; (0, 0) when nothing is finite."""
    lo, hi = scalar_range_chunked(np.asarray(values))
    if np.isnan(lo):
        return (0.0, 0.0)
    return (lo, hi)


def linear_rescale(
    values: np.ndarray,
    kind: NumericKind,
    out_min: Optional[float] = None,
    out_max: Optional[float] = None,
    window: Optional[Tuple[float, float]] = None,
) -> np.ndarray:
    """
    Linear rescale of ``window`` onto ``[out_min, out_max]`` then cast to ``kind``.

    Args:
        values: Pipeline output of any numeric dtype.
        kind: Output numeric kind.
        out_min, out_max: Output bounds; default to the type range of ``kind``.
        window: Explicit input window; defaults to the observed finite range.

    Values at or below the window minimum map exactly to ``out_min`` and at
    or above the window maximum exactly to ``out_max``. A degenerate observed
    window maps every voxel to ``out_min``.
    """
    arr = np.asarray(values, dtype=np.float64)
    lo_out = float(kind.type_min if out_min is None else out_min)
    hi_out = float(kind.type_max if out_max is None else out_max)

    if window is None:
        lo, hi = observed_window(arr)
        if not lo < hi:
            logger.debug("Degenerate observed window [%g, %g]; mapping to output minimum", lo, hi)
            return saturate_cast(np.full(arr.shape, lo_out), kind)
    else:
        lo, hi = float(window[0]), float(window[1])
        if not lo < hi:
            raise PreconditionError(f"Rescale window minimum ({lo:g}) must be below its maximum ({hi:g}).")

    # t in [0, 1]; intermediates stay finite for type-range bounds
    t = exposure.rescale_intensity(np.clip(arr, lo, hi), in_range=(lo, hi), out_range=(0.0, 1.0))
    scaled = lo_out * (1.0 - t) + hi_out * t
    scaled = np.where(arr <= lo, lo_out, scaled)
    scaled = np.where(arr >= hi, hi_out, scaled)
    return saturate_cast(scaled, kind)


def apply_cast_policy(
    values: np.ndarray,
    kind: NumericKind,
    policy: CastPolicy,
    out_min: Optional[float] = None,
    out_max: Optional[float] = None,
    window: Optional[Tuple[float, float]] = None,
) -> np.ndarray:
    if policy is CastPolicy.LINEAR:
        return linear_rescale(values, kind, out_min, out_max, window)
    return saturate_cast(values, kind)


__all__ = [
    "CastPolicy",
    "round_half_away_from_zero",
    "saturate_cast",
    "observed_window",
    "linear_rescale",
    "apply_cast_policy",
]
