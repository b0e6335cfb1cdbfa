"""
Exporters package.
"""

from exporters.vtk import VTKExporter
from exporters.volume import export_npy, export_tiff, export_volume, normalize_formats

__all__ = ['VTKExporter', 'export_npy', 'export_tiff', 'export_volume', 'normalize_formats']
