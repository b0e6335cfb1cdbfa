"""
Synthetic test volumes.
"""

from typing import Callable, Optional, Tuple

import numpy as np

from core.base import BaseLoader, VolumeDescriptor
from core.errors import PreconditionError
from core.scalar_types import NumericKind

PATTERNS = ("sphere", "outlier")


class SyntheticVolumeLoader(BaseLoader):
    """Deterministic volumes for exercising filters without a host."""

    def __init__(self, background: float = 10.0, foreground: float = 200.0) -> None:
        self.background = background
        self.foreground = foreground

    def load(
        self,
        source: str = "sphere",
        callback: Optional[Callable[[int, str], None]] = None,
        shape: Tuple[int, int, int] = (32, 32, 32),
        kind: str = "uint8",
    ) -> VolumeDescriptor:
        """
        Generate a pattern volume.

        Args:
            source: Pattern name, "sphere" or "outlier".
            shape: Array shape (z, y, x).
            kind: Voxel type name.
        """
        if source not in PATTERNS:
            raise PreconditionError(f"Unknown synthetic pattern '{source}'. Expected one of: {', '.join(PATTERNS)}.")
        numeric_kind = NumericKind.from_tag(kind)
        print(f"[Loader] Generating synthetic '{source}' volume {tuple(shape)} ({numeric_kind.value})...")
        if callback:
            callback(0, "Initializing block...")

        if source == "sphere":
            volume = self._sphere(shape)
            description = "Bright sphere centered in a uniform block"
        else:
            volume = self._outlier(shape)
            description = "Uniform block with a single outlier voxel at the center"

        if callback:
            callback(100, "Generation complete.")

        return VolumeDescriptor.from_array(
            volume.astype(numeric_kind.dtype),
            metadata={
                "Type": "Synthetic",
                "Pattern": source,
                "Description": description,
            },
        )

    def _sphere(self, shape: Tuple[int, int, int]) -> np.ndarray:
        volume = np.full(shape, self.background, dtype=np.float64)
        center = [s // 2 for s in shape]
        radius = max(1, min(shape) // 4)
        zz, yy, xx = np.ogrid[: shape[0], : shape[1], : shape[2]]
        mask = (zz - center[0]) ** 2 + (yy - center[1]) ** 2 + (xx - center[2]) ** 2 <= radius ** 2
        volume[mask] = self.foreground
        return volume

    def _outlier(self, shape: Tuple[int, int, int]) -> np.ndarray:
        volume = np.full(shape, self.background, dtype=np.float64)
        volume[tuple(s // 2 for s in shape)] = self.foreground
        return volume
