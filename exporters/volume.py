"""
Export of filter outputs to .npy, .tif and .vti files.
"""

import logging
import os
from typing import Iterable, List

import numpy as np
import tifffile

from core.base import VolumeDescriptor
from core.buffers import view_volume
from core.errors import PreconditionError
from exporters.vtk import VTKExporter

logger = logging.getLogger(__name__)

FORMAT_EXTENSIONS = {
    "npy": ".npy",
    "tiff": ".tif",
    "vti": ".vti",
}


def _volume_array(volume: VolumeDescriptor) -> np.ndarray:
    array = np.array(view_volume(volume).array)
    return array[..., 0] if volume.components == 1 else array


def export_npy(volume: VolumeDescriptor, filepath: str) -> bool:
    np.save(filepath, _volume_array(volume))
    print(f"[Exporter] Array saved to {filepath}")
    return True


def export_tiff(volume: VolumeDescriptor, filepath: str) -> bool:
    """Multi-page TIFF, one page per z slice; components become samples."""
    tifffile.imwrite(filepath, _volume_array(volume))
    print(f"[Exporter] Stack saved to {filepath}")
    return True


_EXPORTERS = {
    "npy": export_npy,
    "tiff": export_tiff,
    "vti": VTKExporter.export,
}


def normalize_formats(formats: Iterable[str]) -> List[str]:
    """Lower-cased format names with "vtk" folded into "vti"; unknown names are rejected."""
    names: List[str] = []
    for fmt in formats:
        fmt = fmt.lower()
        if fmt == "vtk":
            fmt = "vti"
        if fmt not in _EXPORTERS:
            raise PreconditionError(
                f"Unknown export format '{fmt}'. Expected one of: {', '.join(sorted(_EXPORTERS))}."
            )
        names.append(fmt)
    return names


def export_volume(volume: VolumeDescriptor, output_path: str, formats: Iterable[str]) -> List[str]:
    """
    Write ``volume`` once per requested format.

    ``output_path`` is a path stem; a known extension on it is dropped and
    each format appends its own.

    Returns:
        Paths of the written files, in request order.
    """
    names = normalize_formats(formats)
    stem, ext = os.path.splitext(output_path)
    if ext.lower() not in FORMAT_EXTENSIONS.values():
        stem = output_path
    directory = os.path.dirname(stem)
    if directory:
        os.makedirs(directory, exist_ok=True)

    written: List[str] = []
    for fmt in names:
        path = stem + FORMAT_EXTENSIONS[fmt]
        _EXPORTERS[fmt](volume, path)
        logger.debug("exported %s", path)
        written.append(path)
    return written
