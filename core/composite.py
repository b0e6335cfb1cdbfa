"""
Dual-output compositor.

Interleaves the original intensities and a derived single-component result
(mask or level set) into one two-component volume, voxel-aligned.
"""

from __future__ import annotations

import numpy as np

from core.rescale import saturate_cast
from core.scalar_types import NumericKind


def compose_dual_output(original: np.ndarray, derived: np.ndarray, kind: NumericKind) -> np.ndarray:
    """
    Stack ``original`` and ``derived`` as components 0 and 1 of a (z, y, x, 2) array.

    Both channels are saturate-cast into ``kind``; ``original`` of the same
    kind passes through unchanged.
    """
    orig = np.asarray(original)
    der = np.asarray(derived)
    if orig.ndim == 4:
        if orig.shape[3] != 1:
            raise ValueError(f"Composite needs a single-component original, got shape={orig.shape}")
        orig = orig[..., 0]
    if orig.shape != der.shape:
        raise ValueError(f"Composite channels are not voxel-aligned: {orig.shape} vs {der.shape}")

    out = np.empty(orig.shape + (2,), dtype=kind.dtype)
    out[..., 0] = saturate_cast(orig, kind)
    out[..., 1] = saturate_cast(der, kind)
    return out


__all__ = ["compose_dual_output"]
