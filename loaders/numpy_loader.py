"""
NumPy array file loader (.npy / .npz).
"""

import os
from typing import Callable, Optional

import numpy as np

from core.base import BaseLoader, VolumeDescriptor
from core.errors import PreconditionError


class NumpyVolumeLoader(BaseLoader):
    """
    Loads (z, y, x) or (z, y, x, c) arrays.

    ``.npz`` archives hold the voxels under ``volume`` (or their first array)
    and optionally ``spacing`` and ``origin`` in (x, y, z) order.
    """

    def load(self, source: str, callback: Optional[Callable[[int, str], None]] = None) -> VolumeDescriptor:
        if not os.path.isfile(source):
            raise PreconditionError(f"Input file not found: {source}")
        ext = os.path.splitext(source)[1].lower()
        if callback:
            callback(0, f"Reading {os.path.basename(source)}...")

        spacing = (1.0, 1.0, 1.0)
        origin = (0.0, 0.0, 0.0)
        if ext == ".npy":
            array = np.load(source, allow_pickle=False)
        elif ext == ".npz":
            with np.load(source, allow_pickle=False) as archive:
                if not archive.files:
                    raise PreconditionError(f"Archive {source} holds no arrays.")
                key = "volume" if "volume" in archive.files else archive.files[0]
                array = archive[key]
                if "spacing" in archive.files:
                    spacing = tuple(float(v) for v in archive["spacing"])
                if "origin" in archive.files:
                    origin = tuple(float(v) for v in archive["origin"])
        else:
            raise PreconditionError(f"Unsupported input format '{ext}'. Expected .npy or .npz.")

        print(f"[Loader] Loaded {source}: shape={array.shape}, dtype={array.dtype}")
        if callback:
            callback(100, "Load complete.")
        return VolumeDescriptor.from_array(
            array,
            spacing=spacing,
            origin=origin,
            metadata={"Type": "NumPy", "Source": os.path.abspath(source)},
        )


def load_volume(path: str) -> VolumeDescriptor:
    return NumpyVolumeLoader().load(path)
