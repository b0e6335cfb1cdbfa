"""
Filter plugins: one configuration table entry per pipeline.

Modules:
- spec: PluginSpec and volume-dependent parameter defaults
- noise: gradient anisotropic diffusion
- segmentation: confidence connected, geodesic active contours
- surface: anti-aliasing
- intensity: gradient magnitude, intensity windowing, sigmoid
- registry: lookup by key
"""

from plugins.spec import PluginSpec
from plugins.registry import PLUGINS, available_plugins, get_plugin

__all__ = ['PluginSpec', 'PLUGINS', 'available_plugins', 'get_plugin']
