"""
VTK image data exporter for filter outputs.
"""

import numpy as np
import pyvista as pv

from core.base import VolumeDescriptor
from core.buffers import view_volume


class VTKExporter:
    """
    Writes a VolumeDescriptor as a .vti file.

    Voxels become point data of an ``ImageData`` grid whose dimensions,
    spacing and origin are the descriptor's (x, y, z) geometry.
    """

    @staticmethod
    def export(volume: VolumeDescriptor, filepath: str, array_name: str = "values") -> bool:
        if volume is None or volume.buffer is None:
            raise ValueError("No volume data to export.")

        view = view_volume(volume)
        grid = pv.ImageData()
        grid.dimensions = volume.dimensions
        grid.spacing = volume.spacing
        grid.origin = volume.origin

        # (z, y, x, c) C-order is x-fastest, the point order VTK expects
        values = np.ascontiguousarray(view.array).reshape(-1, volume.components)
        if volume.components == 1:
            values = values[:, 0]
        grid.point_data[array_name] = values

        grid.save(filepath)
        print(f"[Exporter] Volume saved to {filepath}")
        return True
