"""
Finite-difference and labeling helpers shared by the pipelines.
"""

from typing import List, Sequence, Tuple

import numpy as np
import scipy.ndimage as ndimage

# Try to import cc3d for faster 3D labeling
try:
    import cc3d
    HAS_CC3D = True
except ImportError:
    HAS_CC3D = False


def gradient_components(image: np.ndarray, spacing_zyx: Sequence[float]) -> List[np.ndarray]:
    """
    Central-difference gradient along z, y, x in physical units.

    Axes shorter than two voxels contribute a zero component.
    """
    comps = []
    for axis, h in enumerate(spacing_zyx):
        if image.shape[axis] < 2:
            comps.append(np.zeros(image.shape, dtype=np.float64))
        else:
            comps.append(np.gradient(image, float(h), axis=axis))
    return comps


def gradient_magnitude(image: np.ndarray, spacing_zyx: Sequence[float]) -> np.ndarray:
    grads = gradient_components(image.astype(np.float64, copy=False), spacing_zyx)
    return np.sqrt(sum(g * g for g in grads))


def face_differences(image: np.ndarray, axis: int, h: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Forward and backward one-sided differences with zero flux at the borders.
    """
    last = np.take(image, [-1], axis=axis)
    first = np.take(image, [0], axis=axis)
    forward = np.diff(image, axis=axis, append=last) / h
    backward = np.diff(image, axis=axis, prepend=first) / h
    return forward, backward


def smoothed_gradient_magnitude(image: np.ndarray, sigma: float, spacing_zyx: Sequence[float]) -> np.ndarray:
    """
    Gradient magnitude of a Gaussian-smoothed image; ``sigma`` in physical units.
    """
    data = image.astype(np.float64, copy=False)
    if sigma > 0:
        sigma_vox = [float(sigma) / float(h) for h in spacing_zyx]
        data = ndimage.gaussian_filter(data, sigma=sigma_vox, mode="nearest")
    return gradient_magnitude(data, spacing_zyx)


def fast_label(binary_mask: np.ndarray, connectivity: int = 6) -> Tuple[np.ndarray, int]:
    """
    3D connected component labeling.
    Uses cc3d if available, otherwise falls back to scipy.

    Args:
        binary_mask: Binary 3D array (True = foreground)
        connectivity: 6, 18, or 26

    Returns:
        (labeled_array, num_features)
    """
    if HAS_CC3D:
        labeled = cc3d.connected_components(np.ascontiguousarray(binary_mask, dtype=np.uint8), connectivity=connectivity)
        return labeled, int(labeled.max())
    rank = {6: 1, 18: 2, 26: 3}[connectivity]
    structure = ndimage.generate_binary_structure(3, rank)
    return ndimage.label(binary_mask, structure=structure)


__all__ = [
    "HAS_CC3D",
    "gradient_components",
    "gradient_magnitude",
    "face_differences",
    "smoothed_gradient_magnitude",
    "fast_label",
]
